"""Configuration loading helpers for the charger supervisor service."""
from __future__ import annotations

import json
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Optional, Tuple

from ev_control import ConfigurationError

DEFAULT_OPTIONS_PATH = Path("/data/options.json")
DEFAULT_UI_STATE_PATH = Path("/data/ui_state.json")


def _split_values(key: str, raw) -> Tuple[str, ...]:
    if isinstance(raw, str):
        items = raw.split(",")
    elif isinstance(raw, (list, tuple)):
        items = list(raw)
    else:
        raise ConfigurationError(f"status_values.{key} must be a string or a list, got {raw!r}")
    return tuple(str(item).strip().lower() for item in items if str(item).strip())


@dataclass(frozen=True)
class StatusValues:
    """Charger status strings that satisfy each signal predicate."""

    not_connected: Tuple[str, ...] = ("available", "disconnected", "not_connected")
    connected: Tuple[str, ...] = ("connected", "waiting", "charging", "charged", "completed", "suspended")
    charging: Tuple[str, ...] = ("charging",)
    completed: Tuple[str, ...] = ("charged", "completed")
    error: Tuple[str, ...] = ("fault", "error")


@dataclass(frozen=True)
class EntityConfig:
    charger_status: str
    charger_switch: Optional[str]
    charge_request: Optional[str] = None


@dataclass(frozen=True)
class SupervisorConfig:
    start_charging_state_detection_delay: float = 300.0
    vehicle_status_poll_interval: float = 10.0


@dataclass(frozen=True)
class RuntimeConfig:
    appliance_id: str
    tick_seconds: float
    supervisor: SupervisorConfig
    entities: EntityConfig
    status_values: StatusValues = field(default_factory=StatusValues)
    publish_entities: bool = True
    ui_state_path: Path = DEFAULT_UI_STATE_PATH
    log_level: str = "INFO"


def _read_json(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def _number(key: str, value, minimum: float) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{key} must be a number, got {value!r}") from exc
    if number < minimum:
        raise ConfigurationError(f"{key} must be >= {minimum}, got {number}")
    return number


def load_runtime_config(path: Path = DEFAULT_OPTIONS_PATH) -> RuntimeConfig:
    return parse_runtime_config(_read_json(path))


def parse_runtime_config(data: dict) -> RuntimeConfig:
    def _extract(key: str, default=None):
        if key in data:
            return data[key]
        return default

    def _from_nested(parent: str, key: str, default=None):
        if parent in data and isinstance(data[parent], dict):
            return data[parent].get(key, default)
        return default

    if not isinstance(data, dict):
        raise ConfigurationError("options must be a mapping")

    entities = _extract("entities", {})
    if not isinstance(entities, dict):
        raise ConfigurationError("entities must be a mapping")

    charger_status = (
        entities.get("charger_status")
        or _extract("charger_status")
        or _from_nested("charger", "status_entity")
        or "sensor.ev_charger_status"
    )
    charger_switch = (
        entities.get("charger_switch")
        or _extract("charger_switch")
        or _from_nested("charger", "switch_entity")
        or "switch.ev_charger"
    )
    charge_request = entities.get("charge_request") or _extract("charge_request")

    delay = _number(
        "start_charging_state_detection_delay",
        _extract(
            "start_charging_state_detection_delay",
            _from_nested("charger", "start_charging_state_detection_delay", 300),
        ),
        0,
    )
    poll_interval = _number(
        "vehicle_status_poll_interval",
        _extract(
            "vehicle_status_poll_interval",
            _from_nested("charger", "poll_interval", 10),
        ),
        1,
    )
    tick_seconds = _number(
        "tick_seconds", _extract("tick_seconds", _from_nested("control", "update_interval", 5)), 0
    )
    tick_seconds = max(1.0, min(60.0, tick_seconds))

    status_values = StatusValues()
    overrides = _extract("status_values", {}) or {}
    if not isinstance(overrides, dict):
        raise ConfigurationError("status_values must be a mapping")
    for key, raw in overrides.items():
        if not hasattr(status_values, key):
            raise ConfigurationError(f"Unknown status_values key: {key}")
        status_values = replace(status_values, **{key: _split_values(key, raw)})

    log_level = str(_extract("log_level", "INFO")).upper()

    return RuntimeConfig(
        appliance_id=str(_extract("appliance_id", "F-00000001-000000000001-00")),
        tick_seconds=tick_seconds,
        supervisor=SupervisorConfig(
            start_charging_state_detection_delay=delay,
            vehicle_status_poll_interval=poll_interval,
        ),
        entities=EntityConfig(
            charger_status=charger_status,
            charger_switch=charger_switch,
            charge_request=charge_request,
        ),
        status_values=status_values,
        publish_entities=bool(_extract("publish_entities", True)),
        ui_state_path=Path(_extract("ui_state_path", str(DEFAULT_UI_STATE_PATH))),
        log_level=log_level,
    )
