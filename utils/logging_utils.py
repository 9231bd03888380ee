import logging

import structlog
from structlog.stdlib import add_log_level, add_logger_name


def resolve_level(level: int | str) -> int:
    """Accept either a logging constant or a level name such as ``"debug"``."""
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def setup_logging(level: int | str = logging.INFO, colors: bool = True) -> None:
    """Configure structlog on top of standard logging at ``level``."""
    level = resolve_level(level)
    logging.basicConfig(level=level, format="%(message)s")
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            add_logger_name,
            add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=False),
            structlog.dev.ConsoleRenderer(colors=colors),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
