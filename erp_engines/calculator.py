"""
Module: erp_engines.calculator
Responsibility:
    Turn line inputs into materialised line amounts and document totals:
    line discount, tax on the post-discount base, document-level discount,
    shipping and grand total.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import erp_kernel domain types.

Invariants enforced:
    - Arithmetic runs on integer minor units (sen for MYR); values are
      rounded half-up exactly once, at the point each field is materialised.
    - amount = subtotal - discount + tax and amount >= 0 for every line.
    - grand_total = subtotal - discount_total + shipping + tax_total >= 0.
    - A fixed line discount is capped at the line subtotal; a fixed document
      discount is capped at (subtotal - line discounts).
    - Tax is charged on the post-discount base.  In INCLUSIVE pricing mode
      tax is first backed out of the unit price, then discount and tax are
      applied to the resulting net amount.

Failure modes:
    - InvalidLineError: quantity <= 0, negative price, percent outside
      0-100, or more fractional digits than the currency allows.
    - AmbiguousDiscountError: both discount_percent and discount_amount set.
    - InvalidDocumentError: negative shipping or invalid document discount.

Usage:
    from erp_engines.calculator import DocumentCalculator
    from erp_kernel.domain.documents import LineItem

    calculator = DocumentCalculator()
    result = calculator.compute_line(
        LineItem(item_id="SKU-1", quantity=Decimal("10"),
                 unit_price=Decimal("25.00"), discount_percent=Decimal("10"),
                 tax_rate_percent=Decimal("6")),
    )
    result.amount  # Decimal("238.50")
"""

from __future__ import annotations

from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal

from erp_engines.tracer import traced_engine
from erp_kernel.domain.documents import (
    DiscountType,
    DocumentDiscount,
    DocumentTotals,
    LineItem,
    LineResult,
    PricingMode,
    TaxBreakdownLine,
)
from erp_kernel.domain.values import Currency, Money
from erp_kernel.exceptions import (
    AmbiguousDiscountError,
    InvalidDocumentError,
    InvalidLineError,
)
from erp_kernel.logging_config import get_logger

logger = get_logger("engines.calculator")

_HUNDRED = Decimal("100")


def _half_up(value: Decimal) -> int:
    """Round a fractional minor-unit amount to a whole minor unit."""
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _is_percent(value: Decimal) -> bool:
    return Decimal("0") <= value <= _HUNDRED


class DocumentCalculator:
    """
    Line and document total calculation.

    Contract:
        Pure functions; identical inputs always produce identical outputs.
    Guarantees:
        - Every Decimal returned carries exactly the currency's fractional
          digits (two for MYR).
    Non-goals:
        - Does not resolve tax codes to rates; callers supply the percent.
    """

    def _minor(self, amount: Decimal, currency: Currency) -> int:
        return Money(amount, currency).to_minor_units()

    def _major(self, units: int, currency: Currency) -> Decimal:
        return Money.from_minor_units(units, currency).amount

    def _validate_line(self, line: LineItem, currency: Currency) -> None:
        if line.quantity is None or line.quantity <= 0:
            raise InvalidLineError("quantity", line.quantity, "must be greater than zero")
        if line.unit_price is None or line.unit_price < 0:
            raise InvalidLineError("unit_price", line.unit_price, "must not be negative")
        if Money(line.unit_price, currency).has_excess_precision:
            raise InvalidLineError(
                "unit_price", line.unit_price,
                f"exceeds {currency.decimal_places} fractional digits for {currency}",
            )
        if line.discount_percent is not None and line.discount_amount is not None:
            raise AmbiguousDiscountError(line.discount_percent, line.discount_amount)
        if line.discount_percent is not None and not _is_percent(line.discount_percent):
            raise InvalidLineError(
                "discount_percent", line.discount_percent, "must be between 0 and 100"
            )
        if line.discount_amount is not None:
            if line.discount_amount < 0:
                raise InvalidLineError(
                    "discount_amount", line.discount_amount, "must not be negative"
                )
            if Money(line.discount_amount, currency).has_excess_precision:
                raise InvalidLineError(
                    "discount_amount", line.discount_amount,
                    f"exceeds {currency.decimal_places} fractional digits for {currency}",
                )
        if line.tax_rate_percent is None or not _is_percent(line.tax_rate_percent):
            raise InvalidLineError(
                "tax_rate_percent", line.tax_rate_percent, "must be between 0 and 100"
            )

    def _line_minor(
        self,
        line: LineItem,
        currency: Currency,
        pricing_mode: PricingMode,
    ) -> tuple[int, int, int, int, int]:
        """(subtotal, discount, taxable, tax, amount) in minor units."""
        self._validate_line(line, currency)

        gross = Decimal(str(line.quantity)) * self._minor(line.unit_price, currency)
        if pricing_mode == PricingMode.INCLUSIVE and line.tax_rate_percent > 0:
            gross = gross * _HUNDRED / (_HUNDRED + line.tax_rate_percent)
        subtotal = _half_up(gross)

        if line.discount_percent is not None:
            discount = _half_up(subtotal * line.discount_percent / _HUNDRED)
        elif line.discount_amount is not None:
            discount = min(self._minor(line.discount_amount, currency), subtotal)
        else:
            discount = 0

        taxable = subtotal - discount
        tax = _half_up(taxable * line.tax_rate_percent / _HUNDRED)
        return subtotal, discount, taxable, tax, taxable + tax

    @traced_engine("calculator.line", "1.0", fingerprint_fields=("line", "pricing_mode"))
    def compute_line(
        self,
        line: LineItem,
        currency: str | Currency = "MYR",
        pricing_mode: PricingMode = PricingMode.EXCLUSIVE,
    ) -> LineResult:
        """Compute materialised amounts for one line."""
        cur = Currency(currency) if isinstance(currency, str) else currency
        subtotal, discount, taxable, tax, amount = self._line_minor(line, cur, pricing_mode)
        return LineResult(
            line=line,
            subtotal=self._major(subtotal, cur),
            discount=self._major(discount, cur),
            taxable=self._major(taxable, cur),
            tax=self._major(tax, cur),
            amount=self._major(amount, cur),
        )

    @traced_engine(
        "calculator.document", "1.0",
        fingerprint_fields=("lines", "document_discount", "shipping", "pricing_mode"),
    )
    def compute_document(
        self,
        lines: Sequence[LineItem],
        document_discount: DocumentDiscount | None = None,
        shipping: Decimal = Decimal("0"),
        currency: str | Currency = "MYR",
        pricing_mode: PricingMode = PricingMode.EXCLUSIVE,
    ) -> DocumentTotals:
        """Compute every line and fold them into document totals."""
        cur = Currency(currency) if isinstance(currency, str) else currency

        if shipping is None or shipping < 0:
            raise InvalidDocumentError("shipping", f"must not be negative, got {shipping}")
        if Money(shipping, cur).has_excess_precision:
            raise InvalidDocumentError(
                "shipping", f"exceeds {cur.decimal_places} fractional digits for {cur}"
            )

        line_results: list[LineResult] = []
        subtotal = line_discounts = tax_total = 0
        breakdown: dict[tuple[str | None, Decimal], list[int]] = {}

        for line in lines:
            l_sub, l_disc, l_taxable, l_tax, l_amount = self._line_minor(line, cur, pricing_mode)
            subtotal += l_sub
            line_discounts += l_disc
            tax_total += l_tax
            if line.tax_rate_id is not None or line.tax_rate_percent > 0:
                key = (line.tax_rate_id, line.tax_rate_percent)
                bucket = breakdown.setdefault(key, [0, 0])
                bucket[0] += l_taxable
                bucket[1] += l_tax
            line_results.append(
                LineResult(
                    line=line,
                    subtotal=self._major(l_sub, cur),
                    discount=self._major(l_disc, cur),
                    taxable=self._major(l_taxable, cur),
                    tax=self._major(l_tax, cur),
                    amount=self._major(l_amount, cur),
                )
            )

        discount_base = subtotal - line_discounts
        doc_discount = self._document_discount_minor(document_discount, discount_base, cur)
        shipping_minor = self._minor(shipping, cur)
        discount_total = line_discounts + doc_discount
        grand_total = subtotal - discount_total + shipping_minor + tax_total

        totals = DocumentTotals(
            subtotal=self._major(subtotal, cur),
            line_discount_total=self._major(line_discounts, cur),
            document_discount=self._major(doc_discount, cur),
            discount_total=self._major(discount_total, cur),
            shipping=self._major(shipping_minor, cur),
            tax_total=self._major(tax_total, cur),
            grand_total=self._major(grand_total, cur),
            lines=tuple(line_results),
            tax_breakdown=tuple(
                TaxBreakdownLine(
                    tax_rate_id=rate_id,
                    rate_percent=rate,
                    taxable=self._major(taxable, cur),
                    tax=self._major(tax, cur),
                )
                for (rate_id, rate), (taxable, tax) in breakdown.items()
            ),
        )

        logger.debug("document_totals_computed", extra={
            "line_count": len(line_results),
            "currency": cur.code,
            "pricing_mode": pricing_mode.value,
            "subtotal": str(totals.subtotal),
            "discount_total": str(totals.discount_total),
            "tax_total": str(totals.tax_total),
            "grand_total": str(totals.grand_total),
        })
        return totals

    def _document_discount_minor(
        self,
        document_discount: DocumentDiscount | None,
        base: int,
        currency: Currency,
    ) -> int:
        if document_discount is None:
            return 0
        value = document_discount.value
        if document_discount.type == DiscountType.PERCENTAGE:
            if value is None or not _is_percent(value):
                raise InvalidDocumentError(
                    "document_discount", f"percentage must be between 0 and 100, got {value}"
                )
            return _half_up(base * value / _HUNDRED)
        if value is None or value < 0:
            raise InvalidDocumentError(
                "document_discount", f"fixed amount must not be negative, got {value}"
            )
        if Money(value, currency).has_excess_precision:
            raise InvalidDocumentError(
                "document_discount",
                f"exceeds {currency.decimal_places} fractional digits for {currency}",
            )
        return min(self._minor(value, currency), base)


_default_calculator = DocumentCalculator()


def compute_line(
    line: LineItem,
    currency: str | Currency = "MYR",
    pricing_mode: PricingMode = PricingMode.EXCLUSIVE,
) -> LineResult:
    """Module-level shortcut for DocumentCalculator().compute_line."""
    return _default_calculator.compute_line(line, currency, pricing_mode)


def compute_document(
    lines: Sequence[LineItem],
    document_discount: DocumentDiscount | None = None,
    shipping: Decimal = Decimal("0"),
    currency: str | Currency = "MYR",
    pricing_mode: PricingMode = PricingMode.EXCLUSIVE,
) -> DocumentTotals:
    """Module-level shortcut for DocumentCalculator().compute_document."""
    return _default_calculator.compute_document(
        lines, document_discount, shipping, currency, pricing_mode
    )
