"""
Settings Loader (``erp_config.loader``).

Responsibility
--------------
Reads a YAML settings file and parses it into the frozen dataclasses of
``erp_config.schema``.  Runtime callers go through
``erp_config.get_active_settings()`` instead of calling this directly.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown keys, wrong types or out-of-range values  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

import yaml

from erp_config.schema import (
    BatchSettings,
    DocumentDefaults,
    EngineSettings,
    PaymentSettings,
    RetrySettings,
)
from erp_kernel.domain.documents import PricingMode

_TOP_LEVEL_KEYS = frozenset(
    {"name", "currency", "pricing_mode", "payments", "batches", "defaults", "retry"}
)


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a single YAML file and return its contents as a dict."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: settings file must contain a mapping")
    return data


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialisation of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _section(data: dict[str, Any], key: str, allowed: frozenset[str]) -> dict[str, Any]:
    raw = data.get(key)
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError(f"'{key}' must be a mapping, got {type(raw).__name__}")
    unknown = set(raw) - allowed
    if unknown:
        raise ValueError(f"Unknown keys in '{key}': {sorted(unknown)}")
    return raw


def _bool(section: str, raw: dict[str, Any], key: str, default: bool) -> bool:
    value = raw.get(key, default)
    if not isinstance(value, bool):
        raise ValueError(f"{section}.{key} must be a boolean, got {value!r}")
    return value


def parse_settings(data: dict[str, Any]) -> EngineSettings:
    """
    Parse an ``EngineSettings`` from a dict.

    Missing sections fall back to the schema defaults; unknown keys are
    rejected so that typos do not silently disable a setting.
    """
    unknown = set(data) - _TOP_LEVEL_KEYS
    if unknown:
        raise ValueError(f"Unknown settings keys: {sorted(unknown)}")

    payments_raw = _section(data, "payments", frozenset({"allow_advances", "auto_apply_payments"}))
    batches_raw = _section(data, "batches", frozenset({"continue_on_error"}))
    defaults_raw = _section(data, "defaults", frozenset({
        "invoice_payment_terms_days",
        "bill_payment_terms_days",
        "quote_validity_days",
        "core_return_due_days",
    }))
    retry_raw = _section(data, "retry", frozenset({"max_attempts"}))

    try:
        pricing_mode = PricingMode(data.get("pricing_mode", PricingMode.EXCLUSIVE.value))
    except ValueError:
        raise ValueError(f"Unknown pricing_mode: {data.get('pricing_mode')!r}") from None

    return EngineSettings(
        name=str(data.get("name", "default")),
        currency=str(data.get("currency", "MYR")),
        pricing_mode=pricing_mode,
        payments=PaymentSettings(
            allow_advances=_bool("payments", payments_raw, "allow_advances", True),
            auto_apply_payments=_bool("payments", payments_raw, "auto_apply_payments", True),
        ),
        batches=BatchSettings(
            continue_on_error=_bool("batches", batches_raw, "continue_on_error", True),
        ),
        defaults=DocumentDefaults(**defaults_raw),
        retry=RetrySettings(**retry_raw),
        checksum=compute_checksum(data),
    )


def load_settings(path: Path) -> EngineSettings:
    return parse_settings(load_yaml_file(path))
