"""
Sales Module.

Quotes, sales orders, invoices, sales returns and core returns.
"""

from erp_modules.sales.workflows import (
    CORE_RETURN_WORKFLOW,
    INVOICE_WORKFLOW,
    QUOTE_WORKFLOW,
    SALES_ORDER_WORKFLOW,
    SALES_RETURN_WORKFLOW,
)

__all__ = [
    "QUOTE_WORKFLOW",
    "SALES_ORDER_WORKFLOW",
    "INVOICE_WORKFLOW",
    "SALES_RETURN_WORKFLOW",
    "CORE_RETURN_WORKFLOW",
]
