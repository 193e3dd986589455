"""
config.py

Analysis configuration: defaults, optional YAML file, command-line
overrides and the LOG_LEVEL environment variable.

Example file::

    input_dir: data/srcml/apache
    output_path: data/metrics/apache.json
    workers: 8
    log_level: INFO
    extensions: [".xml"]
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, List, Optional

import yaml

from .errors import ConfigError

DEFAULT_WORKERS = 8
DEFAULT_EXTENSIONS = [".xml"]


def parse_level(val: str | int | None) -> int:
    """Turn a level name or number into a logging level; unknown values mean INFO."""
    if isinstance(val, int):
        return val
    if not val:
        return logging.INFO
    s = str(val).strip().upper()
    if s.isdigit():
        return int(s)
    return {
        "CRITICAL": logging.CRITICAL,
        "ERROR": logging.ERROR,
        "WARNING": logging.WARNING,
        "WARN": logging.WARNING,
        "INFO": logging.INFO,
        "DEBUG": logging.DEBUG,
        "NOTSET": logging.NOTSET,
    }.get(s, logging.INFO)


@dataclass
class AnalysisConfig:
    input_dir: Optional[str] = None
    output_path: Optional[str] = None
    workers: int = DEFAULT_WORKERS
    log_level: int = field(default_factory=lambda: parse_level(os.getenv("LOG_LEVEL", "INFO")))
    extensions: List[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))

    def validate(self) -> "AnalysisConfig":
        if not self.input_dir:
            raise ConfigError("No input directory given")
        if not os.path.isdir(self.input_dir):
            raise ConfigError(f"Input directory does not exist: {self.input_dir}")
        if int(self.workers) < 1:
            raise ConfigError(f"workers must be at least 1, got {self.workers}")
        if not self.extensions:
            raise ConfigError("extensions must not be empty")
        return self

    def with_overrides(self, **overrides: Any) -> "AnalysisConfig":
        """Return a copy with every non-None override applied."""
        values = {k: v for k, v in overrides.items() if v is not None}
        if "log_level" in values:
            values["log_level"] = parse_level(values["log_level"])
        return replace(self, **values)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown configuration key(s): {', '.join(unknown)}")
        return cls().with_overrides(**data)

    @classmethod
    def load(cls, path: Optional[str]) -> "AnalysisConfig":
        """
        Load a YAML configuration file.

        Args:
            path (str | None): Path of the YAML file; None yields the defaults.

        Returns:
            AnalysisConfig: The configuration (not yet validated).

        Raises:
            ConfigError: If the file cannot be read, is not a mapping or has
                unknown keys.
        """
        if path is None:
            return cls()
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot read configuration {path}: {e}") from e
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigError(f"Configuration {path} must be a mapping, got {type(data).__name__}")
        return cls.from_dict(data)
