"""Currency -- registry of trading currencies and their minor-unit precision."""

from dataclasses import dataclass
from decimal import Decimal
from typing import ClassVar


@dataclass(frozen=True)
class CurrencyInfo:
    """Information about a single ISO 4217 currency."""

    code: str
    decimal_places: int
    name: str

    @property
    def minor_unit(self) -> Decimal:
        """Value of one minor unit (0.01 for MYR)."""
        return Decimal(1).scaleb(-self.decimal_places)

    @property
    def quantize_string(self) -> str:
        """String for Decimal.quantize() to round to this currency's precision."""
        if self.decimal_places == 0:
            return "1"
        return "0." + "0" * self.decimal_places


class CurrencyRegistry:
    """Currencies the ERP trades in, keyed by ISO 4217 code."""

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        # Home market
        "MYR": CurrencyInfo("MYR", 2, "Malaysian Ringgit"),
        # Regional trading partners
        "SGD": CurrencyInfo("SGD", 2, "Singapore Dollar"),
        "IDR": CurrencyInfo("IDR", 2, "Indonesian Rupiah"),
        "THB": CurrencyInfo("THB", 2, "Thai Baht"),
        "BND": CurrencyInfo("BND", 2, "Brunei Dollar"),
        "PHP": CurrencyInfo("PHP", 2, "Philippine Peso"),
        "VND": CurrencyInfo("VND", 0, "Vietnamese Dong"),
        "CNY": CurrencyInfo("CNY", 2, "Chinese Yuan"),
        "JPY": CurrencyInfo("JPY", 0, "Japanese Yen"),
        "KRW": CurrencyInfo("KRW", 0, "South Korean Won"),
        "HKD": CurrencyInfo("HKD", 2, "Hong Kong Dollar"),
        "INR": CurrencyInfo("INR", 2, "Indian Rupee"),
        "AUD": CurrencyInfo("AUD", 2, "Australian Dollar"),
        # Major currencies
        "USD": CurrencyInfo("USD", 2, "US Dollar"),
        "EUR": CurrencyInfo("EUR", 2, "Euro"),
        "GBP": CurrencyInfo("GBP", 2, "Pound Sterling"),
        # Three decimal currencies
        "BHD": CurrencyInfo("BHD", 3, "Bahraini Dinar"),
        "KWD": CurrencyInfo("KWD", 3, "Kuwaiti Dinar"),
    }

    DEFAULT_DECIMAL_PLACES: ClassVar[int] = 2

    @classmethod
    def is_valid(cls, code: str) -> bool:
        """Check if a currency code is registered."""
        if not code or not isinstance(code, str):
            return False
        return code.upper().strip() in cls._CURRENCIES

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo | None:
        """Get currency information by code."""
        if not code or not isinstance(code, str):
            return None
        return cls._CURRENCIES.get(code.upper().strip())

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        """Get decimal places for a currency."""
        info = cls.get_info(code)
        return info.decimal_places if info else cls.DEFAULT_DECIMAL_PLACES

    @classmethod
    def validate(cls, code: str) -> str:
        """Validate and normalize a currency code."""
        if not code or not isinstance(code, str):
            raise ValueError(f"Invalid currency code: {code!r}")

        normalized = code.upper().strip()
        if len(normalized) != 3:
            raise ValueError(f"Currency code must be 3 characters: {code!r}")
        if normalized not in cls._CURRENCIES:
            raise ValueError(f"Unsupported currency code: {code!r}")
        return normalized

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        """Get all registered currency codes."""
        return frozenset(cls._CURRENCIES.keys())
