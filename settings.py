"""
Runtime configuration for the simulator.

Defaults live in the dataclasses below. A YAML file can override them and
AUTOMATA_* environment variables override the file.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing_extensions import *

import yaml


class ConfigError(ValueError):
    """Invalid configuration value."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


@dataclass
class EngineConfig:
    """Search limits and symbol defaults handed to the engines."""

    max_steps: int = 100000
    max_length: int = 5
    cycle_limit: Optional[int] = None
    blank: str = "_"
    initial_stack_symbol: str = "Z"


@dataclass
class LoggingConfig:
    level: str = "warning"
    format: str = "text"


@dataclass
class Settings:
    engine: EngineConfig = field(default_factory=EngineConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "Settings":
        path = Path(path)
        if not path.exists():
            raise ConfigError("path", f"Configuration file not found: {path}")

        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError("yaml", f"Failed to parse YAML: {e}") from e

        if not isinstance(data, dict):
            raise ConfigError("yaml", "Top level must be a mapping")
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        engine_data = data.get("engine", {}) or {}
        logging_data = data.get("logging", {}) or {}

        defaults = EngineConfig()
        try:
            cycle_limit = engine_data.get("cycle_limit", defaults.cycle_limit)
            engine = EngineConfig(
                max_steps=int(engine_data.get("max_steps", defaults.max_steps)),
                max_length=int(engine_data.get("max_length", defaults.max_length)),
                cycle_limit=None if cycle_limit is None else int(cycle_limit),
                blank=str(engine_data.get("blank", defaults.blank)),
                initial_stack_symbol=str(
                    engine_data.get("initial_stack_symbol", defaults.initial_stack_symbol)
                ),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError("engine", f"Failed to parse engine settings: {e}") from e

        settings = cls(
            engine=engine,
            logging=LoggingConfig(
                level=str(logging_data.get("level", "warning")),
                format=str(logging_data.get("format", "text")),
            ),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        if self.engine.max_steps < 1:
            raise ConfigError("engine.max_steps", f"Must be at least 1, got {self.engine.max_steps}")
        if self.engine.max_length < 0:
            raise ConfigError("engine.max_length", f"Must be >= 0, got {self.engine.max_length}")
        if self.engine.cycle_limit is not None and self.engine.cycle_limit < 1:
            raise ConfigError("engine.cycle_limit", f"Must be at least 1, got {self.engine.cycle_limit}")
        for name in ("blank", "initial_stack_symbol"):
            value = getattr(self.engine, name)
            if len(value) != 1:
                raise ConfigError(f"engine.{name}", f"Must be a single character, got {value!r}")
        if self.logging.format not in ("text", "json"):
            raise ConfigError("logging.format", f"Must be 'text' or 'json', got {self.logging.format!r}")


ENV_OVERRIDES = {
    "AUTOMATA_MAX_STEPS": ("engine", "max_steps", int),
    "AUTOMATA_MAX_LENGTH": ("engine", "max_length", int),
    "AUTOMATA_CYCLE_LIMIT": ("engine", "cycle_limit", int),
    "AUTOMATA_BLANK": ("engine", "blank", str),
    "AUTOMATA_STACK_SYMBOL": ("engine", "initial_stack_symbol", str),
    "AUTOMATA_LOG_LEVEL": ("logging", "level", str),
    "AUTOMATA_LOG_FORMAT": ("logging", "format", str),
}


def load_settings(path: Optional[Union[str, Path]] = None, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Load settings from `path` (if given), then apply environment overrides.

    Raises ConfigError on unreadable files or invalid values.
    """
    settings = Settings.from_yaml(path) if path is not None else Settings()
    environ = os.environ if environ is None else environ

    for var, (section, name, convert) in ENV_OVERRIDES.items():
        raw = environ.get(var)
        if raw is None or raw == "":
            continue
        try:
            value = convert(raw)
        except ValueError as e:
            raise ConfigError(var, f"Invalid value {raw!r}") from e
        setattr(getattr(settings, section), name, value)

    settings.validate()
    return settings
