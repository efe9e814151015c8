"""Configuration management for microsim.

Config sections:
- bridge: engine command templates run at lifecycle transitions
- engine: console prompt, echo and the intermediate assignment variable
- weights: validation tolerance
- defaults: preference store location

Config resolution order (highest priority first):
1. Programmatic (MicrosimConfig constructed in code)
2. Environment variables (MICROSIM_ITERATION_END_CMD, etc.), including a .env file
3. Config file (~/.config/microsim/config.json, managed by `microsim config`)
4. Hardcoded defaults
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from dotenv import find_dotenv, load_dotenv

from .core.models import BridgeCommands

logger = logging.getLogger(__name__)


# =============================================================================
# Config file location
# =============================================================================

CONFIG_DIR = Path.home() / ".config" / "microsim"
CONFIG_FILE = CONFIG_DIR / "config.json"


# =============================================================================
# Config dataclasses
# =============================================================================


@dataclass
class BridgeConfig:
    """Engine commands run by the lifecycle bridge.

    Empty string = no command for that transition.
    """

    iteration_end: str = ""
    run_begin: str = ""
    run_end: str = ""
    sim_end: str = ""
    snapshot_name: str = "people"

    def commands(self) -> BridgeCommands:
        return BridgeCommands(
            iteration_end=self.iteration_end,
            run_begin=self.run_begin,
            run_end=self.run_end,
            sim_end=self.sim_end,
        )


@dataclass
class EngineConfig:
    """Statistics engine console settings."""

    prompt: str = "> "
    echo: bool = True
    intermediate_var: str = "_catadj"


@dataclass
class WeightsConfig:
    """Weight validation settings."""

    tolerance: float = 1e-9


@dataclass
class DefaultsConfig:
    """Non-section default settings."""

    prefs_path: str = "./storage/prefs.db"


@dataclass
class MicrosimConfig:
    """Top-level microsim configuration.

    Construct programmatically for package use, or load from config file for CLI use.

    Examples:
        # Package use: no files needed
        config = MicrosimConfig(bridge=BridgeConfig(run_end="print(mean(people.age))"))

        # CLI use: loads from ~/.config/microsim/config.json
        config = MicrosimConfig.load()
    """

    bridge: BridgeConfig = field(default_factory=BridgeConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    weights: WeightsConfig = field(default_factory=WeightsConfig)
    defaults: DefaultsConfig = field(default_factory=DefaultsConfig)

    @classmethod
    def load(cls) -> "MicrosimConfig":
        """Load config from file + env vars.

        Priority: env var values > config.json values > defaults.
        """
        config = cls()

        # Layer 1: Load from config file if it exists
        if CONFIG_FILE.exists():
            try:
                with open(CONFIG_FILE) as f:
                    data = json.load(f)
                _apply_dict(config, data)
            except (json.JSONDecodeError, OSError) as exc:
                logger.warning("Failed to load config from %s: %s", CONFIG_FILE, exc)

        # Layer 2: Env var overrides
        _ensure_dotenv()
        if val := os.environ.get("MICROSIM_ITERATION_END_CMD"):
            config.bridge.iteration_end = val
        if val := os.environ.get("MICROSIM_RUN_BEGIN_CMD"):
            config.bridge.run_begin = val
        if val := os.environ.get("MICROSIM_RUN_END_CMD"):
            config.bridge.run_end = val
        if val := os.environ.get("MICROSIM_SIM_END_CMD"):
            config.bridge.sim_end = val
        if val := os.environ.get("MICROSIM_SNAPSHOT_NAME"):
            config.bridge.snapshot_name = val
        if val := os.environ.get("MICROSIM_WEIGHT_TOLERANCE"):
            try:
                config.weights.tolerance = float(val)
            except ValueError:
                logger.warning("Invalid MICROSIM_WEIGHT_TOLERANCE=%r, ignoring", val)
        if val := os.environ.get("MICROSIM_PREFS_PATH"):
            config.defaults.prefs_path = val

        return config

    def save(self) -> None:
        """Save config to ~/.config/microsim/config.json."""
        CONFIG_DIR.mkdir(parents=True, exist_ok=True)
        with open(CONFIG_FILE, "w") as f:
            json.dump(self.to_dict(), f, indent=2)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dict for display."""
        return {
            "bridge": asdict(self.bridge),
            "engine": asdict(self.engine),
            "weights": asdict(self.weights),
            "defaults": asdict(self.defaults),
        }

    @property
    def prefs_path_resolved(self) -> Path:
        """Resolve preference store path."""
        path = Path(self.defaults.prefs_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        return path


# =============================================================================
# Config dict application
# =============================================================================

_FIELD_TYPES: dict[str, type] = {
    "echo": bool,
    "tolerance": float,
}


def _apply_dict(config: MicrosimConfig, data: dict) -> None:
    """Apply a dict of values onto a MicrosimConfig."""
    for section_name in ("bridge", "engine", "weights", "defaults"):
        section_data = data.get(section_name)
        if not isinstance(section_data, dict):
            continue
        section = getattr(config, section_name)
        for k, v in section_data.items():
            if not hasattr(section, k):
                continue
            if k in _FIELD_TYPES and v is not None:
                v = _FIELD_TYPES[k](v)
            setattr(section, k, v)


# =============================================================================
# .env loading
# =============================================================================

_dotenv_loaded = False


def _ensure_dotenv() -> None:
    """Load .env file into os.environ if not already loaded."""
    global _dotenv_loaded
    if not _dotenv_loaded:
        _dotenv_loaded = True
        dotenv_path = find_dotenv(usecwd=True)
        if dotenv_path:
            load_dotenv(dotenv_path=dotenv_path, override=False)


# =============================================================================
# Global config singleton
# =============================================================================

_config: MicrosimConfig | None = None


def get_config() -> MicrosimConfig:
    """Get the global MicrosimConfig instance.

    First call loads from file + env vars. Subsequent calls return cached instance.
    Use configure() to replace the global config programmatically.
    """
    global _config
    if _config is None:
        _config = MicrosimConfig.load()
    return _config


def configure(config: MicrosimConfig) -> None:
    """Set the global MicrosimConfig programmatically.

    Use this when microsim is used as a package:
        from microsim.config import configure, MicrosimConfig, WeightsConfig
        configure(MicrosimConfig(weights=WeightsConfig(tolerance=1e-6)))
    """
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global config (forces reload on next get_config())."""
    global _config
    _config = None
