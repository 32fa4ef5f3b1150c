"""Workflow table per document kind, keyed by kind name."""

from types import MappingProxyType

from erp_engines.state_machine import REORDER_ALERT_KIND
from erp_kernel.domain.documents import DocumentKind
from erp_kernel.domain.workflow import Workflow
from erp_modules.inventory.workflows import REORDER_ALERT_WORKFLOW
from erp_modules.purchasing.workflows import BILL_WORKFLOW, PURCHASE_ORDER_WORKFLOW
from erp_modules.sales.workflows import (
    CORE_RETURN_WORKFLOW,
    INVOICE_WORKFLOW,
    QUOTE_WORKFLOW,
    SALES_ORDER_WORKFLOW,
    SALES_RETURN_WORKFLOW,
)

WORKFLOWS: MappingProxyType[str, Workflow] = MappingProxyType({
    DocumentKind.QUOTE.value: QUOTE_WORKFLOW,
    DocumentKind.SALES_ORDER.value: SALES_ORDER_WORKFLOW,
    DocumentKind.INVOICE.value: INVOICE_WORKFLOW,
    DocumentKind.PURCHASE_ORDER.value: PURCHASE_ORDER_WORKFLOW,
    DocumentKind.BILL.value: BILL_WORKFLOW,
    DocumentKind.SALES_RETURN.value: SALES_RETURN_WORKFLOW,
    DocumentKind.CORE_RETURN.value: CORE_RETURN_WORKFLOW,
    REORDER_ALERT_KIND: REORDER_ALERT_WORKFLOW,
})
