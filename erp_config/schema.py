"""
Engine settings schema.

Frozen dataclasses parsed from a YAML settings file by
``erp_config.loader``.  Field defaults are the values shipped in
``sets/default.yaml``; override per deployment with another file.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from erp_kernel.domain.currency import CurrencyRegistry
from erp_kernel.domain.documents import PricingMode


@dataclass(frozen=True)
class PaymentSettings:
    """How payments are applied to invoices and bills."""

    allow_advances: bool = True
    # Apply oldest-due-first when the caller names no targets
    auto_apply_payments: bool = True


@dataclass(frozen=True)
class BatchSettings:
    continue_on_error: bool = True


@dataclass(frozen=True)
class DocumentDefaults:
    """Day offsets used to derive due and validity dates."""

    invoice_payment_terms_days: int = 30
    bill_payment_terms_days: int = 30
    quote_validity_days: int = 30
    core_return_due_days: int = 30

    def __post_init__(self) -> None:
        for name in (
            "invoice_payment_terms_days",
            "bill_payment_terms_days",
            "quote_validity_days",
            "core_return_due_days",
        ):
            value = getattr(self, name)
            if not isinstance(value, int) or value < 0:
                raise ValueError(f"{name} must be a non-negative integer, got {value!r}")


@dataclass(frozen=True)
class RetrySettings:
    max_attempts: int = 3

    def __post_init__(self) -> None:
        if not isinstance(self.max_attempts, int) or self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts!r}")


@dataclass(frozen=True)
class EngineSettings:
    """Complete runtime settings for the document core."""

    name: str = "default"
    currency: str = "MYR"
    pricing_mode: PricingMode = PricingMode.EXCLUSIVE
    payments: PaymentSettings = field(default_factory=PaymentSettings)
    batches: BatchSettings = field(default_factory=BatchSettings)
    defaults: DocumentDefaults = field(default_factory=DocumentDefaults)
    retry: RetrySettings = field(default_factory=RetrySettings)
    checksum: str = ""

    def __post_init__(self) -> None:
        if not CurrencyRegistry.is_valid(self.currency):
            raise ValueError(f"Unknown currency code: {self.currency!r}")
