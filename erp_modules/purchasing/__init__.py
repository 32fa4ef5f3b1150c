"""
Purchasing Module.

Purchase orders and vendor bills.
"""

from erp_modules.purchasing.workflows import BILL_WORKFLOW, PURCHASE_ORDER_WORKFLOW

__all__ = ["PURCHASE_ORDER_WORKFLOW", "BILL_WORKFLOW"]
