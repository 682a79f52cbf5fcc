"""guidescout configuration -- cache root, contrib override, environment overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path


def _optional_env(key: str) -> str | None:
    return os.environ.get(key) or None


@dataclass
class ScoutConfig:
    """Settings threaded into every language adapter at construction time.

    Adapters never read ``os.environ`` directly; everything they need from the
    process environment arrives through this object.
    """

    cache_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get(
                "GUIDESCOUT_CACHE_DIR",
                str(Path.home() / ".guides-cache" / "urls"),
            )
        )
    )
    contrib_dir: str | None = field(
        default_factory=lambda: _optional_env("GUIDESCOUT_CONTRIB")
    )
    pub_cache: str | None = field(
        default_factory=lambda: _optional_env("PUB_CACHE")
    )
    python_env: str | None = field(
        default_factory=lambda: _optional_env("UV_PROJECT_ENVIRONMENT")
    )
    derived_data_dir: Path = field(
        default_factory=lambda: Path(
            os.environ.get(
                "GUIDESCOUT_DERIVED_DATA",
                str(Path.home() / "Library" / "Developer" / "Xcode" / "DerivedData"),
            )
        )
    )
    fetch_timeout: float = field(
        default_factory=lambda: float(os.environ.get("GUIDESCOUT_FETCH_TIMEOUT", "5"))
    )
    log_level: str = field(
        default_factory=lambda: os.environ.get("GUIDESCOUT_LOG_LEVEL", "INFO")
    )


# Singleton for convenience
_config: ScoutConfig | None = None


def get_config() -> ScoutConfig:
    """Get or create the global guidescout configuration."""
    global _config
    if _config is None:
        _config = ScoutConfig()
    return _config


def reset_config() -> None:
    """Reset the global configuration (for testing)."""
    global _config
    _config = None
