"""
Inventory Module.

Reorder alert lifecycle.  Scanning lives in erp_engines.alerts.
"""

from erp_modules.inventory.workflows import REORDER_ALERT_WORKFLOW

__all__ = ["REORDER_ALERT_WORKFLOW"]
