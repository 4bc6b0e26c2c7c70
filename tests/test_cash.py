"""
Tests for the cash register shifts and payment attribution.
"""
import pytest
from hypothesis import given, settings, Phase
from hypothesis import strategies as st

from cash import (
    close_shift, current_open_shift, open_shift, parse_method, record_payment,
    shift_summary, unattributed_payments,
)
from errors import InvariantViolation, ValidationError
from models import db, CashShift, PaymentMethod
from stays import record_entry, record_exit
from tests.conftest import T0, make_app


class TestShiftLifecycle:

    def test_no_shift_open_initially(self, db_session):
        assert current_open_shift(db_session) is None

    def test_open_shift(self, db_session, t0):
        shift = open_shift(db_session, 100.0, now=t0)
        assert shift.id is not None
        assert shift.opened_at == t0
        assert shift.closed_at is None
        assert shift.initial_amount == 100.0
        assert current_open_shift(db_session) is shift

    def test_opening_twice_returns_the_open_shift(self, db_session, t0, later):
        first = open_shift(db_session, 100.0, now=t0)
        second = open_shift(db_session, 5.0, now=later(10))
        assert second is first
        assert second.initial_amount == 100.0
        assert db_session.query(CashShift).count() == 1

    def test_close_shift(self, db_session, t0, later):
        shift = open_shift(db_session, now=t0)
        closed = close_shift(db_session, now=later(480))
        assert closed is shift
        assert shift.closed_at == later(480)
        assert current_open_shift(db_session) is None

    def test_close_with_none_open_is_a_noop(self, db_session):
        assert close_shift(db_session) is None
        assert db_session.query(CashShift).count() == 0

    def test_closed_shift_is_not_reopened(self, db_session, t0, later):
        first = open_shift(db_session, now=t0)
        close_shift(db_session, now=later(60))
        second = open_shift(db_session, now=later(120))
        assert second.id > first.id
        assert first.closed_at == later(60)

    def test_two_open_shifts_is_an_invariant_violation(self, db_session, t0):
        db_session.add_all([CashShift(opened_at=t0), CashShift(opened_at=t0)])
        db_session.commit()
        with pytest.raises(InvariantViolation):
            current_open_shift(db_session)


class TestPayments:

    def test_parse_method(self):
        assert parse_method('CASH') is PaymentMethod.CASH
        assert parse_method(' pix ') is PaymentMethod.PIX
        assert parse_method(PaymentMethod.CARD) is PaymentMethod.CARD

    @pytest.mark.parametrize('method', ['', None, 'bitcoin'])
    def test_parse_method_rejects_unknown(self, method):
        with pytest.raises(ValidationError):
            parse_method(method)

    def test_payment_recorded_without_open_shift(self, db_session, t0):
        stay = record_entry(db_session, 'ABC1234', now=t0)
        payment = record_payment(db_session, stay, 10.0, 'cash', now=t0)
        db_session.commit()
        assert payment.cash_shift_id is None
        assert unattributed_payments(db_session) == [payment]

    def test_payments_follow_the_open_shift(self, db_session, t0, later):
        record_entry(db_session, 'AAA111', now=t0)
        record_entry(db_session, 'BBB222', now=t0)
        record_entry(db_session, 'CCC333', now=t0)

        _, before = record_exit(db_session, 'AAA111', 'cash', now=later(30))
        shift = open_shift(db_session, 20.0, now=later(40))
        _, during = record_exit(db_session, 'BBB222', 'card', now=later(90))
        close_shift(db_session, now=later(100))
        _, after = record_exit(db_session, 'CCC333', 'pix', now=later(110))

        assert before.cash_shift_id is None
        assert during.cash_shift_id == shift.id
        assert after.cash_shift_id is None
        assert set(unattributed_payments(db_session)) == {before, after}

    def test_shift_summary(self, db_session, t0, later):
        shift = open_shift(db_session, now=t0)
        record_entry(db_session, 'AAA111', now=t0)
        record_entry(db_session, 'BBB222', now=t0)
        _, first = record_exit(db_session, 'AAA111', 'cash', now=later(30))
        _, second = record_exit(db_session, 'BBB222', 'card', now=later(90))

        summary = shift_summary(db_session)
        assert summary['shift'] is shift
        assert summary['payments'] == [second, first]
        assert summary['total'] == 24.0

    def test_shift_summary_without_open_shift(self, db_session):
        summary = shift_summary(db_session)
        assert summary == {'shift': None, 'payments': [], 'total': 0}


class TestOpenShiftInvariant:

    @given(actions=st.lists(st.sampled_from(['open', 'close']), max_size=20))
    @settings(max_examples=30, deadline=None, phases=[Phase.generate])
    def test_at_most_one_open_shift(self, actions):
        """For any sequence of opens and closes at most one shift is open."""
        app = make_app()
        with app.app_context():
            try:
                for action in actions:
                    if action == 'open':
                        open_shift(db.session, now=T0)
                    else:
                        close_shift(db.session, now=T0)
                    open_count = db.session.query(CashShift).filter(
                        CashShift.closed_at.is_(None)
                    ).count()
                    assert open_count <= 1
            finally:
                db.session.remove()
                db.drop_all()
