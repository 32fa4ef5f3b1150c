"""Tests for retry_on_conflict."""

import pytest

from erp_kernel.exceptions import ConcurrentModificationError, InvalidDocumentError
from erp_services.retry import retry_on_conflict


def _conflict():
    return ConcurrentModificationError("document", "doc-1", 1, 2)


def test_returns_first_success():
    assert retry_on_conflict(lambda: 42) == 42


def test_retries_conflicts_until_success():
    calls = []

    def op():
        calls.append(1)
        if len(calls) < 3:
            raise _conflict()
        return "done"

    assert retry_on_conflict(op, attempts=3) == "done"
    assert len(calls) == 3


def test_exhausted_attempts_reraise(captured_logs):
    calls = []

    def op():
        calls.append(1)
        raise _conflict()

    with pytest.raises(ConcurrentModificationError):
        retry_on_conflict(op, attempts=2)

    assert len(calls) == 2
    assert any(r["message"] == "conflict_retries_exhausted" for r in captured_logs())


def test_other_errors_not_retried():
    calls = []

    def op():
        calls.append(1)
        raise InvalidDocumentError("lines", "bad")

    with pytest.raises(InvalidDocumentError):
        retry_on_conflict(op, attempts=5)
    assert len(calls) == 1


def test_attempts_must_be_positive():
    with pytest.raises(ValueError):
        retry_on_conflict(lambda: None, attempts=0)
