"""
Typed Exception Hierarchy for the ERP core.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from ErpCoreError:

    ErpCoreError (base)
    |
    +-- ValidationError
    |   +-- InvalidLineError
    |   +-- AmbiguousDiscountError
    |   +-- InvalidDocumentError
    |   +-- InvalidAllocationError
    |   +-- CurrencyMismatchError
    |
    +-- StateMachineError
    |   +-- IllegalTransitionError
    |   +-- GuardViolationError
    |   +-- DocumentLockedError
    |
    +-- AllocationError
    |   +-- OverAllocationError
    |   +-- AdvanceNotPermittedError
    |
    +-- ConcurrencyError
    |   +-- ConcurrentModificationError
    |   +-- DeadlineExceededError
    |
    +-- NotFoundError
    |   +-- DocumentNotFoundError
    |   +-- AlertNotFoundError
    |
    +-- ConversionError
        +-- ConversionNotAllowedError
        +-- NothingToConvertError
        +-- QuantityExceedsRemainingError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|---------------------------------------
Validation      | INVALID_LINE                  | Quantity <= 0, price < 0, rate out of range
                | AMBIGUOUS_DISCOUNT            | Line sets both percent and amount discount
                | INVALID_DOCUMENT              | Bad shipping, document discount, party
                | INVALID_ALLOCATION            | Unknown target, non-positive amount
                | CURRENCY_MISMATCH             | Mixed currencies in one operation
----------------|-------------------------------|---------------------------------------
State machine   | ILLEGAL_TRANSITION            | No edge for (kind, state, event)
                | GUARD_VIOLATION               | Edge exists but its precondition fails
                | DOCUMENT_LOCKED               | Line edit outside the initial state
----------------|-------------------------------|---------------------------------------
Allocation      | OVER_ALLOCATION               | Sum of requests exceeds payment amount
                | ADVANCE_NOT_PERMITTED         | Unallocated remainder with advances off
----------------|-------------------------------|---------------------------------------
Concurrency     | CONCURRENT_MODIFICATION       | Expected version differs from stored
                | DEADLINE_EXCEEDED             | Caller deadline passed before commit
----------------|-------------------------------|---------------------------------------
Not found       | DOCUMENT_NOT_FOUND            | Unknown document id
                | ALERT_NOT_FOUND               | Unknown alert id
----------------|-------------------------------|---------------------------------------
Conversion      | CONVERSION_NOT_ALLOWED        | Source document in the wrong state
                | NOTHING_TO_CONVERT            | Every source line fully converted
                | QUANTITY_EXCEEDS_REMAINING    | Requested more than is left to convert

===============================================================================
HANDLING PATTERNS
===============================================================================

    try:
        service.transition(document_id, "CANCEL")
    except GuardViolationError as e:
        return {"error": e.code, "guard": e.guard_name, "reason": e.reason}

    ConcurrencyError subclasses carry ``retryable``; callers may re-run the
    whole unit of work (see erp_services.retry.retry_on_conflict).
"""

from decimal import Decimal


class ErpCoreError(Exception):
    """
    Base exception for all ERP core errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "ERP_CORE_ERROR"
    retryable: bool = False


# Validation exceptions


class ValidationError(ErpCoreError):
    """Base exception for input validation errors."""

    code: str = "VALIDATION_ERROR"


class InvalidLineError(ValidationError):
    """A line item input is out of range."""

    code: str = "INVALID_LINE"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid line {field}={value!r}: {reason}")


class AmbiguousDiscountError(ValidationError):
    """Both a percentage and a fixed discount were given."""

    code: str = "AMBIGUOUS_DISCOUNT"

    def __init__(self, discount_percent: Decimal, discount_amount: Decimal):
        self.discount_percent = discount_percent
        self.discount_amount = discount_amount
        super().__init__(
            "Line may carry discount_percent or discount_amount, not both "
            f"(got {discount_percent}% and {discount_amount})"
        )


class InvalidDocumentError(ValidationError):
    """A document-level input is invalid."""

    code: str = "INVALID_DOCUMENT"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid document {field}: {reason}")


class InvalidAllocationError(ValidationError):
    """A payment allocation request is malformed."""

    code: str = "INVALID_ALLOCATION"

    def __init__(self, document_id: str | None, reason: str):
        self.document_id = document_id
        self.reason = reason
        target = f" for {document_id}" if document_id else ""
        super().__init__(f"Invalid allocation{target}: {reason}")


class CurrencyMismatchError(ValidationError):
    """Attempted operation on mismatched currencies."""

    code: str = "CURRENCY_MISMATCH"

    def __init__(self, currency1: str, currency2: str):
        self.currency1 = currency1
        self.currency2 = currency2
        super().__init__(f"Currency mismatch: {currency1} vs {currency2}")


# State machine exceptions


class StateMachineError(ErpCoreError):
    """Base exception for lifecycle errors."""

    code: str = "STATE_MACHINE_ERROR"


class IllegalTransitionError(StateMachineError):
    """No transition is defined for the event in the current state."""

    code: str = "ILLEGAL_TRANSITION"

    def __init__(self, kind: str, state: str, event: str):
        self.kind = kind
        self.state = state
        self.event = event
        super().__init__(f"{kind} in state {state} does not accept event {event}")


class GuardViolationError(StateMachineError):
    """A transition exists but its precondition is not met."""

    code: str = "GUARD_VIOLATION"

    def __init__(self, kind: str, state: str, event: str, guard_name: str, reason: str):
        self.kind = kind
        self.state = state
        self.event = event
        self.guard_name = guard_name
        self.reason = reason
        super().__init__(f"Cannot {event} {kind} in state {state}: {reason}")


class DocumentLockedError(StateMachineError):
    """Lines may only be edited in the initial state."""

    code: str = "DOCUMENT_LOCKED"

    def __init__(self, document_id: str, status: str):
        self.document_id = document_id
        self.status = status
        super().__init__(
            f"Document {document_id} is locked in status {status}; "
            "lines can only be edited before it leaves its initial state"
        )


# Allocation exceptions


class AllocationError(ErpCoreError):
    """Base exception for payment allocation errors."""

    code: str = "ALLOCATION_ERROR"


class OverAllocationError(AllocationError):
    """Requested allocations exceed the payment amount."""

    code: str = "OVER_ALLOCATION"

    def __init__(self, payment_amount: Decimal, requested_total: Decimal):
        self.payment_amount = payment_amount
        self.requested_total = requested_total
        super().__init__(
            f"Requested allocations {requested_total} exceed payment amount {payment_amount}"
        )


class AdvanceNotPermittedError(AllocationError):
    """Payment would leave an unallocated remainder while advances are disabled."""

    code: str = "ADVANCE_NOT_PERMITTED"

    def __init__(self, unallocated: Decimal):
        self.unallocated = unallocated
        super().__init__(
            f"Payment leaves {unallocated} unallocated and advance payments are disabled"
        )


# Concurrency exceptions


class ConcurrencyError(ErpCoreError):
    """Base exception for concurrency errors."""

    code: str = "CONCURRENCY_ERROR"


class ConcurrentModificationError(ConcurrencyError):
    """Optimistic version check failed on save."""

    code: str = "CONCURRENT_MODIFICATION"
    retryable: bool = True

    def __init__(
        self,
        entity_type: str,
        entity_id: str,
        expected_version: int | None,
        actual_version: int | None,
    ):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Concurrent modification of {entity_type} {entity_id}: "
            f"expected version {expected_version}, found {actual_version}"
        )


class DeadlineExceededError(ConcurrencyError):
    """The caller's deadline passed before the unit of work committed."""

    code: str = "DEADLINE_EXCEEDED"

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"Deadline exceeded before {operation} could commit")


# Lookup exceptions


class NotFoundError(ErpCoreError):
    """Base exception for missing aggregates."""

    code: str = "NOT_FOUND"


class DocumentNotFoundError(NotFoundError):
    """Document with given ID was not found."""

    code: str = "DOCUMENT_NOT_FOUND"

    def __init__(self, document_id: str):
        self.document_id = document_id
        super().__init__(f"Document not found: {document_id}")


class AlertNotFoundError(NotFoundError):
    """Alert with given ID was not found."""

    code: str = "ALERT_NOT_FOUND"

    def __init__(self, alert_id: str):
        self.alert_id = alert_id
        super().__init__(f"Alert not found: {alert_id}")


# Conversion exceptions


class ConversionError(ErpCoreError):
    """Base exception for document conversion errors."""

    code: str = "CONVERSION_ERROR"


class ConversionNotAllowedError(ConversionError):
    """Source document is not in a state that permits the conversion."""

    code: str = "CONVERSION_NOT_ALLOWED"

    def __init__(self, source_id: str, source_kind: str, status: str, target_kind: str):
        self.source_id = source_id
        self.source_kind = source_kind
        self.status = status
        self.target_kind = target_kind
        super().__init__(
            f"Cannot convert {source_kind} {source_id} in status {status} to {target_kind}"
        )


class NothingToConvertError(ConversionError):
    """Every line of the source has already been converted."""

    code: str = "NOTHING_TO_CONVERT"

    def __init__(self, source_id: str, target_kind: str):
        self.source_id = source_id
        self.target_kind = target_kind
        super().__init__(f"Nothing left to convert from {source_id} to {target_kind}")


class QuantityExceedsRemainingError(ConversionError):
    """Requested conversion quantity exceeds what is left on the source line."""

    code: str = "QUANTITY_EXCEEDS_REMAINING"

    def __init__(self, source_id: str, line_id: str, requested: Decimal, remaining: Decimal):
        self.source_id = source_id
        self.line_id = line_id
        self.requested = requested
        self.remaining = remaining
        super().__init__(
            f"Line {line_id} of {source_id}: requested {requested}, "
            f"only {remaining} remaining"
        )
