"""
Configuration Module

Padding and classifier tuning settings, per-format presets,
and loading from the YAML settings file.
"""

from dataclasses import asdict, dataclass, fields, replace
from enum import Enum
from pathlib import Path
from typing import Optional

import yaml


@dataclass
class PaddingConfig:
    """How raw rally intervals are turned into output clips."""

    pre_padding: float = 2.0  # Seconds added before each rally
    post_padding: float = 3.0  # Seconds added after each rally
    min_raw_duration: float = 0.0  # Raw rallies shorter than this are dropped

    def validate(self):
        """Raise ValueError if any value is outside its domain."""
        for name in ("pre_padding", "post_padding", "min_raw_duration"):
            _check_number(name, getattr(self, name))
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)}")

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "PaddingConfig":
        """Build a validated config from a settings section."""
        config = cls(**_known_fields(cls, data or {}, "padding"))
        config.validate()
        return config

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class TuningConfig:
    """
    Rally classifier thresholds and timers.

    Energies are normalized (0-1). ``walking_energy_threshold`` is expected
    to sit below ``action_energy_threshold`` and ``ready_max_energy`` below
    ``walking_energy_threshold``, but that ordering is not enforced.
    """

    action_energy_threshold: float = 0.60
    walking_energy_threshold: float = 0.20
    ready_max_energy: float = 0.18

    clustering_threshold: float = 10.0
    reset_low_energy_seconds: float = 2.0

    ready_stability_window_seconds: float = 1.0
    ready_active_count_variance_max: float = 1.0

    ready_timeout_seconds: float = 12.0

    enable_warmup_skipping: bool = True
    warmup_min_sustained_action_seconds: float = 4.0

    def validate(self):
        """Raise ValueError if any value is outside its domain."""
        for f in fields(self):
            if f.name == "enable_warmup_skipping":
                if not isinstance(self.enable_warmup_skipping, bool):
                    raise ValueError(
                        "enable_warmup_skipping must be true or false, "
                        f"got {self.enable_warmup_skipping!r}"
                    )
            else:
                _check_number(f.name, getattr(self, f.name))

        for name in (
            "action_energy_threshold",
            "walking_energy_threshold",
            "ready_max_energy",
        ):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} must be within [0, 1], got {value}")

        for name in (
            "clustering_threshold",
            "reset_low_energy_seconds",
            "ready_active_count_variance_max",
            "ready_timeout_seconds",
            "warmup_min_sustained_action_seconds",
        ):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)}")

        if self.ready_stability_window_seconds <= 0:
            raise ValueError(
                "ready_stability_window_seconds must be > 0, "
                f"got {self.ready_stability_window_seconds}"
            )

    @classmethod
    def from_dict(
        cls, data: Optional[dict], base: Optional["TuningConfig"] = None
    ) -> "TuningConfig":
        """
        Build a validated config from a settings section.

        Args:
            data: Mapping of field names to values
            base: Config supplying values for fields missing from data
                (defaults are used when None)
        """
        config = replace(base or cls(), **_known_fields(cls, data or {}, "tuning"))
        config.validate()
        return config

    def to_dict(self) -> dict:
        return asdict(self)


class GameFormat(str, Enum):
    """Volleyball variant, used to pick default tuning."""

    BEACH = "beach"
    GRASS = "grass"
    INDOOR = "indoor"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()

    @property
    def default_tuning(self) -> TuningConfig:
        """Tuning preset for this format."""
        if self is GameFormat.BEACH:
            return TuningConfig(action_energy_threshold=0.60, clustering_threshold=10.0)
        if self is GameFormat.GRASS:
            return TuningConfig(action_energy_threshold=0.58, clustering_threshold=9.0)
        return TuningConfig(action_energy_threshold=0.55, clustering_threshold=7.0)

    @classmethod
    def guess(cls, filename: str) -> "GameFormat":
        """Guess the format from a file name, defaulting to indoor."""
        lower = Path(filename).name.lower()
        for game_format in cls:
            if game_format.value in lower:
                return game_format
        return cls.INDOOR


def _check_number(name: str, value):
    # bool is an int subclass but never a valid threshold
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be a number, got {value!r}")


def _known_fields(cls, data: dict, section: str) -> dict:
    if not isinstance(data, dict):
        raise ValueError(f"{section} settings must be a mapping")
    names = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - names)
    if unknown:
        raise ValueError(f"Unknown {section} setting(s): {', '.join(unknown)}")
    return dict(data)


def load_config(config_path: str = "config/settings.yaml") -> dict:
    """
    Load configuration from YAML file.

    Raises:
        ValueError: If the file is not valid YAML or is not a mapping
    """
    config_file = Path(config_path)
    if not config_file.exists():
        print(f"Config file not found: {config_path}, using defaults")
        return {}

    with open(config_file) as f:
        try:
            config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid config file {config_path}: {e}") from e

    if not isinstance(config, dict):
        raise ValueError(f"Config file {config_path} must contain a mapping")
    return config


def build_configs(
    config: dict, filename: Optional[str] = None
) -> tuple[GameFormat, PaddingConfig, TuningConfig]:
    """
    Turn a loaded settings dict into typed, validated configs.

    The ``format`` key selects the tuning preset; ``auto`` (or a missing
    key) guesses it from ``filename``. Values in the ``tuning`` section
    override the preset.

    Returns:
        (game_format, padding, tuning)
    """
    format_name = str(config.get("format") or "auto").lower()
    if format_name == "auto":
        game_format = GameFormat.guess(filename or "")
    else:
        try:
            game_format = GameFormat(format_name)
        except ValueError:
            raise ValueError(f"Unknown game format: {format_name}") from None

    padding = PaddingConfig.from_dict(config.get("padding"))
    tuning = TuningConfig.from_dict(config.get("tuning"), base=game_format.default_tuning)
    return game_format, padding, tuning
