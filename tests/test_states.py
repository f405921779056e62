"""Tests for the transaction state machine."""

import pytest

from venuebridge.errors import IllegalTransitionError
from venuebridge.ledger.states import (
    TERMINAL_STATUSES,
    TransactionDirection,
    TransactionStatus,
    can_transition,
    is_valid_status,
    states_for,
    validate_transition,
)

D = TransactionDirection
S = TransactionStatus


class TestStateSets:
    """Each direction owns a distinct state set."""

    def test_deposit_states(self):
        assert states_for(D.DEPOSIT) == {
            S.EXCHANGE_CREATED,
            S.EXCHANGE_CONVERTING,
            S.EXCHANGE_COMPLETED,
            S.VENUE_DEPOSIT_PENDING,
            S.VENUE_DEPOSIT_CONFIRMED,
            S.FAILED,
        }

    def test_withdraw_states(self):
        assert states_for(D.WITHDRAW) == {
            S.VENUE_WITHDRAW_PENDING,
            S.VENUE_WITHDRAW_CONFIRMED,
            S.EXCHANGE_CONVERTING,
            S.EXCHANGE_COMPLETED,
            S.COMPLETED,
            S.FAILED,
        }

    def test_withdraw_status_is_not_a_deposit_status(self):
        assert not is_valid_status(D.DEPOSIT, S.VENUE_WITHDRAW_PENDING)
        assert not is_valid_status(D.WITHDRAW, S.VENUE_DEPOSIT_PENDING)
        assert not is_valid_status(D.WITHDRAW, S.EXCHANGE_CREATED)

    def test_accepts_raw_strings(self):
        assert is_valid_status("DEPOSIT", "EXCHANGE_CREATED")


class TestTransitions:
    """Tests for edge validation."""

    @pytest.mark.parametrize(
        "current,target",
        [
            (S.EXCHANGE_CREATED, S.EXCHANGE_CONVERTING),
            (S.EXCHANGE_CREATED, S.EXCHANGE_COMPLETED),
            (S.EXCHANGE_CONVERTING, S.EXCHANGE_COMPLETED),
            (S.EXCHANGE_COMPLETED, S.VENUE_DEPOSIT_PENDING),
            (S.VENUE_DEPOSIT_PENDING, S.VENUE_DEPOSIT_CONFIRMED),
        ],
    )
    def test_deposit_forward_edges(self, current, target):
        assert can_transition(D.DEPOSIT, current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (S.VENUE_WITHDRAW_PENDING, S.VENUE_WITHDRAW_CONFIRMED),
            (S.VENUE_WITHDRAW_CONFIRMED, S.EXCHANGE_CONVERTING),
            (S.EXCHANGE_CONVERTING, S.EXCHANGE_COMPLETED),
            (S.EXCHANGE_COMPLETED, S.COMPLETED),
        ],
    )
    def test_withdraw_forward_edges(self, current, target):
        assert can_transition(D.WITHDRAW, current, target)

    def test_failed_reachable_from_every_non_terminal_state(self):
        for direction in D:
            for status in states_for(direction):
                expected = status not in TERMINAL_STATUSES
                assert can_transition(direction, status, S.FAILED) is expected

    def test_no_edges_out_of_terminal_states(self):
        for direction in D:
            for terminal in states_for(direction) & TERMINAL_STATUSES:
                for target in states_for(direction):
                    assert not can_transition(direction, terminal, target)

    def test_deposit_cannot_complete_as_withdrawal(self):
        assert not can_transition(D.DEPOSIT, S.EXCHANGE_COMPLETED, S.COMPLETED)

    def test_withdraw_cannot_enter_venue_deposit(self):
        assert not can_transition(D.WITHDRAW, S.EXCHANGE_COMPLETED, S.VENUE_DEPOSIT_PENDING)

    def test_skipping_a_step_is_illegal(self):
        assert not can_transition(D.DEPOSIT, S.EXCHANGE_CREATED, S.VENUE_DEPOSIT_PENDING)
        assert not can_transition(D.WITHDRAW, S.VENUE_WITHDRAW_PENDING, S.EXCHANGE_CONVERTING)

    def test_backwards_is_illegal(self):
        assert not can_transition(D.DEPOSIT, S.EXCHANGE_CONVERTING, S.EXCHANGE_CREATED)

    def test_validate_raises_with_details(self):
        with pytest.raises(IllegalTransitionError) as exc_info:
            validate_transition(D.DEPOSIT, S.VENUE_DEPOSIT_CONFIRMED, S.FAILED)

        assert exc_info.value.direction == "DEPOSIT"
        assert exc_info.value.current == "VENUE_DEPOSIT_CONFIRMED"
        assert exc_info.value.target == "FAILED"
