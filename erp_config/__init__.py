"""
erp_config -- single public entrypoint for engine settings.

Responsibility:
    ``get_active_settings()`` is the only way services obtain settings.
    YAML loading is internal; no other component reads settings files.

Failure modes:
    - ``FileNotFoundError`` -- the requested settings file does not exist.
    - ``ValueError`` -- unknown keys, wrong types or out-of-range values.

Audit relevance:
    Every successful call emits an ``ERP_CONFIG_TRACE`` log entry with the
    settings name and checksum, tying every operation to the exact settings
    that governed it.
"""

from __future__ import annotations

from pathlib import Path

from erp_config.loader import load_settings
from erp_config.schema import EngineSettings
from erp_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_SETTINGS_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_settings(path: Path | str | None = None) -> EngineSettings:
    """Load and validate the settings file at ``path`` (default: sets/default.yaml)."""
    settings_path = Path(path) if path is not None else DEFAULT_SETTINGS_PATH
    settings = load_settings(settings_path)

    _logger.info(
        "ERP_CONFIG_TRACE",
        extra={
            "trace_type": "ERP_CONFIG_TRACE",
            "settings_name": settings.name,
            "settings_path": str(settings_path),
            "checksum": settings.checksum,
            "currency": settings.currency,
            "pricing_mode": settings.pricing_mode.value,
            "allow_advances": settings.payments.allow_advances,
            "continue_on_error": settings.batches.continue_on_error,
        },
    )
    return settings


__all__ = ["EngineSettings", "get_active_settings", "DEFAULT_SETTINGS_PATH"]
