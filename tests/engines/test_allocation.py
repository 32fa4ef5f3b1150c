"""
Tests for the payment allocation engine.

Covers:
- Requested amounts applied in caller order
- Clipping to the target balance, remainder becomes an advance
- Over-allocation rejected before anything is applied
- Advance policy
- Oldest-due-first request building
- Edge cases and error handling
"""

from datetime import date
from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from erp_engines.allocation import (
    AllocationRequest,
    AllocationTarget,
    PaymentAllocationEngine,
)
from erp_kernel.domain.values import Money
from erp_kernel.exceptions import (
    AdvanceNotPermittedError,
    CurrencyMismatchError,
    InvalidAllocationError,
    OverAllocationError,
)


def _m(amount: str, currency: str = "MYR") -> Money:
    return Money.of(amount, currency)


@pytest.fixture
def engine() -> PaymentAllocationEngine:
    return PaymentAllocationEngine()


class TestRequestedAllocation:
    """Tests for caller-directed allocation."""

    def test_exact_settlement(self, engine):
        result = engine.allocate(
            _m("300.00"),
            [AllocationTarget("inv-1", _m("300.00"))],
            [AllocationRequest("inv-1", _m("300.00"))],
        )
        assert result.total_allocated == _m("300.00")
        assert result.unallocated.is_zero
        assert result.is_fully_allocated
        assert result.lines[0].is_fully_allocated
        assert not result.is_advance

    def test_partial_payment_leaves_balance(self, engine):
        result = engine.allocate(
            _m("200.00"),
            [AllocationTarget("inv-1", _m("500.00"))],
            [AllocationRequest("inv-1", _m("200.00"))],
        )
        line = result.lines[0]
        assert line.allocated == _m("200.00")
        assert line.remaining == _m("300.00")
        assert not line.is_fully_allocated

    def test_request_clipped_to_balance(self, engine):
        result = engine.allocate(
            _m("500.00"),
            [AllocationTarget("inv-1", _m("120.00"))],
            [AllocationRequest("inv-1", _m("500.00"))],
        )
        line = result.lines[0]
        assert line.is_clipped
        assert line.allocated == _m("120.00")
        assert result.unallocated == _m("380.00")
        assert result.is_advance

    def test_order_preserved_across_targets(self, engine):
        result = engine.allocate(
            _m("250.00"),
            [
                AllocationTarget("inv-a", _m("100.00")),
                AllocationTarget("inv-b", _m("100.00")),
            ],
            [
                AllocationRequest("inv-b", _m("150.00")),
                AllocationRequest("inv-a", _m("100.00")),
            ],
        )
        assert [line.target_id for line in result.lines] == ["inv-b", "inv-a"]
        assert result.lines[0].allocated == _m("100.00")
        assert result.lines[1].allocated == _m("100.00")
        assert result.unallocated == _m("50.00")

    def test_same_target_requested_twice(self, engine):
        result = engine.allocate(
            _m("150.00"),
            [AllocationTarget("inv-1", _m("120.00"))],
            [
                AllocationRequest("inv-1", _m("100.00")),
                AllocationRequest("inv-1", _m("50.00")),
            ],
        )
        assert result.lines[1].allocated == _m("20.00")
        assert result.applied_by_target() == {"inv-1": _m("120.00")}

    def test_fully_paid_target_receives_nothing(self, engine):
        result = engine.allocate(
            _m("50.00"),
            [AllocationTarget("inv-1", _m("0.00"))],
            [AllocationRequest("inv-1", _m("50.00"))],
        )
        assert result.lines[0].allocated.is_zero
        assert result.applied == ()
        assert result.unallocated == _m("50.00")

    def test_no_requests_is_pure_advance(self, engine):
        result = engine.allocate(_m("75.00"), [], [])
        assert result.lines == ()
        assert result.unallocated == _m("75.00")


class TestOverAllocation:
    def test_requests_exceeding_payment_rejected(self, engine):
        """A 150.00 payment cannot be split 100.00 + 100.00."""
        with pytest.raises(OverAllocationError) as exc_info:
            engine.allocate(
                _m("150.00"),
                [
                    AllocationTarget("inv-a", _m("100.00")),
                    AllocationTarget("inv-b", _m("100.00")),
                ],
                [
                    AllocationRequest("inv-a", _m("100.00")),
                    AllocationRequest("inv-b", _m("100.00")),
                ],
            )
        assert exc_info.value.payment_amount == Decimal("150.00")
        assert exc_info.value.requested_total == Decimal("200.00")

    def test_over_request_rejected_even_if_clipping_would_fit(self, engine):
        with pytest.raises(OverAllocationError):
            engine.allocate(
                _m("100.00"),
                [AllocationTarget("inv-1", _m("10.00"))],
                [AllocationRequest("inv-1", _m("100.01"))],
            )


class TestAdvancePolicy:
    def test_remainder_rejected_when_advances_disabled(self, engine):
        with pytest.raises(AdvanceNotPermittedError) as exc_info:
            engine.allocate(
                _m("100.00"),
                [AllocationTarget("inv-1", _m("60.00"))],
                [AllocationRequest("inv-1", _m("100.00"))],
                allow_advances=False,
            )
        assert exc_info.value.unallocated == Decimal("40.00")

    def test_exact_allocation_allowed_when_advances_disabled(self, engine):
        result = engine.allocate(
            _m("60.00"),
            [AllocationTarget("inv-1", _m("60.00"))],
            [AllocationRequest("inv-1", _m("60.00"))],
            allow_advances=False,
        )
        assert result.is_fully_allocated


class TestValidation:
    def test_non_positive_payment(self, engine):
        with pytest.raises(InvalidAllocationError):
            engine.allocate(_m("0.00"), [], [])

    def test_unknown_target(self, engine):
        with pytest.raises(InvalidAllocationError) as exc_info:
            engine.allocate(
                _m("10.00"),
                [AllocationTarget("inv-1", _m("10.00"))],
                [AllocationRequest("inv-2", _m("10.00"))],
            )
        assert exc_info.value.document_id == "inv-2"

    def test_non_positive_request(self, engine):
        with pytest.raises(InvalidAllocationError):
            engine.allocate(
                _m("10.00"),
                [AllocationTarget("inv-1", _m("10.00"))],
                [AllocationRequest("inv-1", _m("0.00"))],
            )

    def test_target_currency_mismatch(self, engine):
        with pytest.raises(CurrencyMismatchError):
            engine.allocate(
                _m("10.00"),
                [AllocationTarget("inv-1", _m("10.00", "SGD"))],
                [],
            )

    def test_request_currency_mismatch(self, engine):
        with pytest.raises(CurrencyMismatchError):
            engine.allocate(
                _m("10.00"),
                [AllocationTarget("inv-1", _m("10.00"))],
                [AllocationRequest("inv-1", _m("10.00", "USD"))],
            )


class TestOldestFirst:
    def test_requests_follow_due_date(self, engine):
        targets = [
            AllocationTarget("inv-new", _m("100.00"), date(2024, 3, 31)),
            AllocationTarget("inv-undated", _m("100.00")),
            AllocationTarget("inv-old", _m("100.00"), date(2024, 1, 31)),
        ]
        requests = engine.oldest_first_requests(_m("150.00"), targets)
        assert [(r.target_id, r.amount) for r in requests] == [
            ("inv-old", _m("100.00")),
            ("inv-new", _m("50.00")),
        ]

    def test_undated_targets_last(self, engine):
        targets = [
            AllocationTarget("inv-undated", _m("10.00")),
            AllocationTarget("inv-dated", _m("10.00"), date(2024, 5, 1)),
        ]
        requests = engine.oldest_first_requests(_m("20.00"), targets)
        assert [r.target_id for r in requests] == ["inv-dated", "inv-undated"]

    def test_settled_targets_skipped(self, engine):
        targets = [
            AllocationTarget("inv-paid", _m("0.00"), date(2024, 1, 1)),
            AllocationTarget("inv-open", _m("40.00"), date(2024, 2, 1)),
        ]
        result = engine.allocate_oldest_first(_m("100.00"), targets)
        assert result.applied_by_target() == {"inv-open": _m("40.00")}
        assert result.unallocated == _m("60.00")


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------

cents = st.integers(min_value=1, max_value=1_000_000)


class TestAllocationProperties:
    @given(
        payment=cents,
        balances=st.lists(st.integers(min_value=0, max_value=500_000), min_size=1, max_size=5),
        data=st.data(),
    )
    @settings(max_examples=200, deadline=None)
    def test_conservation_and_bounds(self, payment, balances, data):
        engine = PaymentAllocationEngine()
        payment_money = Money.from_minor_units(payment, "MYR")
        targets = [
            AllocationTarget(f"t{i}", Money.from_minor_units(b, "MYR"))
            for i, b in enumerate(balances)
        ]
        requests = []
        budget = payment
        for target in targets:
            if budget <= 0:
                break
            amount = data.draw(st.integers(min_value=1, max_value=budget))
            budget -= amount
            requests.append(
                AllocationRequest(target.target_id, Money.from_minor_units(amount, "MYR"))
            )

        result = engine.allocate(payment_money, targets, requests)

        assert result.total_allocated + result.unallocated == payment_money
        assert not result.unallocated.is_negative
        applied = result.applied_by_target()
        for target in targets:
            if target.target_id in applied:
                assert applied[target.target_id] <= target.balance
        for line in result.lines:
            assert line.allocated <= line.requested

    @given(payment=cents, balances=st.lists(cents, min_size=1, max_size=5))
    @settings(max_examples=100, deadline=None)
    def test_oldest_first_never_over_applies(self, payment, balances):
        engine = PaymentAllocationEngine()
        targets = [
            AllocationTarget(f"t{i}", Money.from_minor_units(b, "MYR"), date(2024, 1, i + 1))
            for i, b in enumerate(balances)
        ]
        result = engine.allocate_oldest_first(Money.from_minor_units(payment, "MYR"), targets)
        expected = min(payment, sum(balances))
        assert result.total_allocated.to_minor_units() == expected
