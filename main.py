# main.py
import argparse
import sys
import time
from pathlib import Path
from typing import List, Optional

import structlog

from goap.config import load_scenario, load_settings
from goap.debug import format_state, planners_frame
from goap.driver import PlannerLoop, Trigger, every_n_ticks, when_idle
from goap.sandbox import build_agent, perform_marked_actions
from goap.scheduler import PlanScheduler
from utils.logging_utils import setup_logging

# --- Paths relative to this script's location ---
SCRIPT_DIR = Path(__file__).parent.resolve()
CONFIG_DIR = SCRIPT_DIR / "config"

SETTINGS_FILE = CONFIG_DIR / "settings.toml"
SCENARIO_FILE = CONFIG_DIR / "scenarios" / "hungry_and_tired.yaml"
# --- End Paths ---

log = structlog.get_logger()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run a GOAP scenario headless.")
    parser.add_argument("--scenario", type=Path, default=SCENARIO_FILE, help="Scenario YAML file")
    parser.add_argument("--settings", type=Path, default=SETTINGS_FILE, help="Planner settings TOML file")
    parser.add_argument("--ticks", type=int, default=20, help="Number of ticks to run")
    parser.add_argument(
        "--tick-delay", type=float, default=0.01, help="Seconds to sleep between ticks"
    )
    parser.add_argument("--log-level", default=None, help="Override the configured log level")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the headless runner."""
    args = parse_args(argv)

    try:
        settings = load_settings(args.settings)
        setup_logging(args.log_level or settings.log_level)
        definitions = load_scenario(args.scenario)
    except FileNotFoundError as e:
        log.critical("Required file not found during init", error=str(e))
        sys.exit(f"Initialization failed: File not found - {e}")
    except (TypeError, ValueError) as e:
        log.critical("Invalid configuration", error=str(e), exc_info=True)
        sys.exit(f"Configuration failed: {e}")

    triggers: List[Trigger] = []
    if settings.replan_interval_ticks:
        triggers.append(every_n_ticks(settings.replan_interval_ticks))
    if settings.replan_when_idle or not triggers:
        triggers.append(when_idle())

    with PlanScheduler.from_settings(settings) as scheduler:
        loop = PlannerLoop(scheduler, triggers)
        agents = []
        for definition in definitions:
            agent, planner = build_agent(definition)
            loop.add(planner)
            agents.append((agent, planner, definition.bounds))
        log.info("Running scenario", path=str(args.scenario), agents=len(agents), ticks=args.ticks)

        for _ in range(args.ticks):
            loop.tick()
            for agent, planner, bounds in agents:
                perform_marked_actions(agent, planner, bounds)
            if args.tick_delay > 0:
                time.sleep(args.tick_delay)

        for _agent, planner, _bounds in agents:
            print(f"--- {planner.name} ---")
            print(format_state(planner.state))
        print(planners_frame(loop.planners))
    return 0


if __name__ == "__main__":
    sys.exit(main())
