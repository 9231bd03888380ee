"""Loading planner settings (TOML) and agent definitions (YAML).

Settings live in a ``[planner]`` table of a TOML file and control the
scheduler and re-plan triggers.  Definitions describe agents: their initial
facts, actions and goals, plus optional value bounds that the sandbox
executor applies after real execution.

Definition syntax::

    enums:
      Item: [NOTHING, LEMONADE]
    agents:
      customer:
        state: {thirst: 0.0, carrying: Item.NOTHING}
        actions:
          drink:
            preconditions: [[carrying, "==", Item.LEMONADE]]
            mutators: [[carrying, set, Item.NOTHING], [thirst, decrease, 10.0]]
            cost: 1
        goals:
          - [[thirst, "<", 1.0]]
        bounds: {thirst: [0.0, 100.0]}
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Type

import structlog
import yaml

from goap.actions import Action, Goal
from goap.datum import (
    Compare,
    CompareOp,
    Datum,
    LocalState,
    Mutator,
    MutatorOp,
    Precondition,
)
from goap.search import DEFAULT_MAX_EXPANSIONS

log = structlog.get_logger()

COMPARE_ALIASES: Dict[str, CompareOp] = {
    "equals": CompareOp.EQUALS,
    "not_equals": CompareOp.NOT_EQUALS,
    "less": CompareOp.LESS_THAN,
    "less_equals": CompareOp.LESS_THAN_EQUALS,
    "greater": CompareOp.GREATER_THAN,
    "greater_equals": CompareOp.GREATER_THAN_EQUALS,
}
COMPARE_ALIASES.update({op.value: op for op in CompareOp})

EnumTable = Mapping[str, Type[Enum]]


# --- File Loading Helpers ---
def load_toml_config(config_path: Path, config_name: str) -> Dict[str, Any]:
    """Loads a TOML configuration file, returning ``{}`` if it is missing or invalid."""
    if not config_path.is_file():
        log.warning(f"{config_name} config file not found, using defaults", path=str(config_path))
        return {}
    try:
        with config_path.open("rb") as f:
            config_data = tomllib.load(f)
        log.info(f"{config_name} config loaded", path=str(config_path))
        return config_data
    except tomllib.TOMLDecodeError as e:
        log.error(f"Error parsing TOML for {config_name}", path=str(config_path), error=str(e))
        return {}


def load_yaml_config(config_path: Path, config_name: str) -> Dict[str, Any]:
    """Loads a YAML configuration file; missing or malformed files raise."""
    if not config_path.is_file():
        log.error(f"{config_name} config file not found", path=str(config_path))
        raise FileNotFoundError(f"{config_name} configuration file not found: {config_path}")
    try:
        with config_path.open("r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        log.error(f"Error parsing YAML for {config_name}", path=str(config_path), error=str(e))
        raise
    if config_data is None:
        log.warning(f"{config_name} config file is empty.", path=str(config_path))
        return {}
    if not isinstance(config_data, dict):
        raise ValueError(f"{config_name} config must be a mapping, got {type(config_data).__name__}")
    log.info(f"{config_name} config loaded", path=str(config_path))
    return config_data


# --- Settings ---
@dataclass(frozen=True)
class PlannerSettings:
    max_expansions: int = DEFAULT_MAX_EXPANSIONS
    worker_threads: int = 4
    use_worker_pool: bool = True
    discard_stale_results: bool = False
    replan_interval_ticks: Optional[int] = None
    replan_when_idle: bool = False
    log_level: str = "INFO"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "PlannerSettings":
        section = data.get("planner", {})
        unknown = set(section) - set(cls.__dataclass_fields__)
        if unknown:
            log.warning("Ignoring unknown planner settings", keys=sorted(unknown))
        settings = cls(**{k: v for k, v in section.items() if k in cls.__dataclass_fields__})
        if settings.max_expansions <= 0 or settings.worker_threads <= 0:
            raise ValueError("max_expansions and worker_threads must be positive")
        if settings.replan_interval_ticks is not None and settings.replan_interval_ticks <= 0:
            raise ValueError("replan_interval_ticks must be positive when set")
        return settings


def load_settings(path: Path) -> PlannerSettings:
    return PlannerSettings.from_mapping(load_toml_config(path, "Planner settings"))


# --- Definitions ---
@dataclass
class AgentDefinition:
    name: str
    state: LocalState
    actions: List[Action]
    goals: List[Goal]
    bounds: Dict[str, Tuple[float, float]] = field(default_factory=dict)


def parse_enums(data: Mapping[str, Any]) -> Dict[str, Type[Enum]]:
    enums: Dict[str, Type[Enum]] = {}
    for name, members in (data or {}).items():
        if not isinstance(members, list) or not members:
            raise ValueError(f"Enum '{name}' must list at least one member")
        enums[name] = Enum(name, [str(m) for m in members])
    return enums


def parse_value(raw: Any, enums: EnumTable) -> Datum:
    if isinstance(raw, str):
        enum_name, _, member = raw.partition(".")
        enum_type = enums.get(enum_name)
        if enum_type is None or not member:
            raise ValueError(f"Unknown value '{raw}'; strings must be 'Enum.MEMBER'")
        try:
            return Datum.enum(enum_type[member])
        except KeyError:
            raise ValueError(f"Enum '{enum_name}' has no member '{member}'") from None
    return Datum.from_value(raw)


def _triple(entry: Any, what: str) -> Tuple[str, str, Any]:
    if not isinstance(entry, (list, tuple)) or len(entry) != 3:
        raise ValueError(f"{what} must be a [key, op, value] triple, got {entry!r}")
    key, op, value = entry
    return str(key), str(op), value


def parse_precondition(entry: Any, enums: EnumTable) -> Precondition:
    key, op_name, raw = _triple(entry, "Precondition")
    op = COMPARE_ALIASES.get(op_name)
    if op is None:
        raise ValueError(f"Unknown comparator '{op_name}' for '{key}'")
    return Precondition(key, Compare(op, parse_value(raw, enums)))


def parse_mutator(entry: Any, enums: EnumTable) -> Mutator:
    key, op_name, raw = _triple(entry, "Mutator")
    try:
        op = MutatorOp(op_name.lower())
    except ValueError:
        raise ValueError(f"Unknown mutator operation '{op_name}' for '{key}'") from None
    datum = parse_value(raw, enums)
    if op is MutatorOp.SET:
        return Mutator(key, op, datum)
    if op is MutatorOp.INCREASE:
        return Mutator.increase(key, datum)
    return Mutator.decrease(key, datum)


def parse_action(key: str, data: Mapping[str, Any], enums: EnumTable) -> Action:
    data = data or {}
    return Action(
        key=key,
        preconditions=tuple(parse_precondition(p, enums) for p in data.get("preconditions", [])),
        mutators=tuple(parse_mutator(m, enums) for m in data.get("mutators", [])),
        cost=data.get("cost", 1),
    )


def parse_goal(entries: Any, enums: EnumTable) -> Goal:
    if not isinstance(entries, list):
        raise ValueError(f"Goal must be a list of requirements, got {entries!r}")
    return Goal(tuple(parse_precondition(e, enums) for e in entries))


def parse_agent(name: str, data: Mapping[str, Any], enums: EnumTable) -> AgentDefinition:
    state = LocalState({k: parse_value(v, enums) for k, v in (data.get("state") or {}).items()})
    actions = [parse_action(k, v, enums) for k, v in (data.get("actions") or {}).items()]
    goals = [parse_goal(g, enums) for g in (data.get("goals") or [])]
    bounds = {}
    for key, pair in (data.get("bounds") or {}).items():
        lo, hi = pair
        if lo > hi:
            raise ValueError(f"Bounds for '{key}' are inverted: {pair!r}")
        bounds[key] = (lo, hi)
    if not actions:
        log.warning("Agent defined without actions", agent=name)
    if not goals:
        log.warning("Agent defined without goals", agent=name)
    return AgentDefinition(name=name, state=state, actions=actions, goals=goals, bounds=bounds)


def parse_scenario(data: Mapping[str, Any]) -> List[AgentDefinition]:
    enums = parse_enums(data.get("enums", {}))
    agents = data.get("agents") or {}
    definitions = [parse_agent(str(name), body or {}, enums) for name, body in agents.items()]
    log.info("Scenario parsed", agents=len(definitions), enums=sorted(enums))
    return definitions


def load_scenario(path: Path) -> List[AgentDefinition]:
    return parse_scenario(load_yaml_config(path, "Scenario"))
