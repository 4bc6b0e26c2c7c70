"""
Cash register shifts and the payments taken during them.

At most one shift is open at a time. A payment is attributed to the shift
open when it is taken, or to no shift at all when the register is closed.
"""
import logging
from datetime import datetime

from errors import InvariantViolation, ValidationError
from models import CashShift, Payment, PaymentMethod
from registry import as_text
from storage import save_dataset

logger = logging.getLogger(__name__)


def parse_method(method):
    """Return the PaymentMethod for a name like 'cash' or 'PIX'."""
    if isinstance(method, PaymentMethod):
        return method
    try:
        return PaymentMethod(as_text(method).strip().lower())
    except ValueError:
        allowed = ', '.join(m.value for m in PaymentMethod)
        raise ValidationError(f'Unknown payment method {method!r} (use {allowed})')


def current_open_shift(session):
    open_shifts = session.query(CashShift).filter(CashShift.closed_at.is_(None)).all()
    if len(open_shifts) > 1:
        raise InvariantViolation(
            f'{len(open_shifts)} cash shifts are open at the same time'
        )
    return open_shifts[0] if open_shifts else None


def open_shift(session, initial_amount=0.0, now=None):
    """Open a shift, or return the one already open unchanged."""
    shift = current_open_shift(session)
    if shift is not None:
        logger.debug('Cash shift %s already open', shift.id)
        return shift

    shift = CashShift(
        opened_at=now or datetime.now(),
        closed_at=None,
        initial_amount=round(float(initial_amount or 0), 2),
    )
    session.add(shift)
    save_dataset(session)
    logger.info('Opened cash shift %s with %.2f', shift.id, shift.initial_amount)
    return shift


def close_shift(session, now=None):
    """Close the open shift. Returns None when no shift is open."""
    shift = current_open_shift(session)
    if shift is None:
        logger.debug('No cash shift open to close')
        return None

    shift.closed_at = now or datetime.now()
    save_dataset(session)
    logger.info('Closed cash shift %s', shift.id)
    return shift


def record_payment(session, stay, amount, method, now=None):
    """
    Add a payment for ``stay`` to the session without saving it.

    The caller saves, so the payment lands together with the stay update
    it belongs to.
    """
    method = parse_method(method)
    shift = current_open_shift(session)
    payment = Payment(
        stay=stay,
        paid_at=now or datetime.now(),
        method=method.value,
        amount=amount,
        cash_shift_id=shift.id if shift else None,
    )
    session.add(payment)
    return payment


def shift_payments(session, shift):
    return (
        session.query(Payment)
        .filter(Payment.cash_shift_id == shift.id)
        .order_by(Payment.paid_at.desc(), Payment.id.desc())
        .all()
    )


def shift_summary(session, shift=None):
    """
    Payments of a shift (the open one by default) and their total.

    Returns:
        dict with 'shift', 'payments' and 'total'; when no shift is given
        and none is open, shift is None and there are no payments.
    """
    if shift is None:
        shift = current_open_shift(session)
    payments = shift_payments(session, shift) if shift else []
    total = round(sum(p.amount for p in payments), 2)
    return {'shift': shift, 'payments': payments, 'total': total}


def unattributed_payments(session):
    return (
        session.query(Payment)
        .filter(Payment.cash_shift_id.is_(None))
        .order_by(Payment.paid_at.desc(), Payment.id.desc())
        .all()
    )
