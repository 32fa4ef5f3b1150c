"""Lifecycle events accepted by the document state machine."""

from enum import Enum


class DocumentEvent(str, Enum):
    """Event names used as workflow transition actions."""

    # Quotes
    SEND = "SEND"
    ACCEPT = "ACCEPT"
    REJECT = "REJECT"
    EXPIRE = "EXPIRE"
    CONVERT = "CONVERT"
    # Sales orders
    CONFIRM = "CONFIRM"
    SHIP = "SHIP"
    DELIVER = "DELIVER"
    CLOSE = "CLOSE"
    CANCEL = "CANCEL"
    # Purchase orders
    ISSUE = "ISSUE"
    RECEIVE = "RECEIVE"
    # Invoices and bills
    APPROVE = "APPROVE"
    APPLY_PAYMENT = "APPLY_PAYMENT"
    MARK_OVERDUE = "MARK_OVERDUE"
    VOID = "VOID"
    # Returns
    PROCESS = "PROCESS"
    CREDIT = "CREDIT"
    # Reorder alerts
    ACKNOWLEDGE = "ACKNOWLEDGE"
    CREATE_PO = "CREATE_PO"
    RESOLVE = "RESOLVE"


class SideEffectKind(str, Enum):
    """Work the caller performs after a transition commits."""

    RESERVE_STOCK = "RESERVE_STOCK"
    RELEASE_STOCK = "RELEASE_STOCK"
    ISSUE_STOCK = "ISSUE_STOCK"
    RECEIVE_STOCK = "RECEIVE_STOCK"
    RESTOCK_RETURN = "RESTOCK_RETURN"
    ISSUE_CREDIT_NOTE = "ISSUE_CREDIT_NOTE"
    ISSUE_CORE_CREDIT = "ISSUE_CORE_CREDIT"
    SUBMIT_EINVOICE = "SUBMIT_EINVOICE"
