"""
Vehicle stays: entry opens a stay, exit closes it, prices it and takes the
payment.
"""
import logging
from datetime import datetime

from cash import parse_method, record_payment
from errors import InvariantViolation, NoOpenStayError, NoPricingRuleError, NotFoundError
from models import Stay
from pricing import compute_fee, pick_active_rule
from registry import find_vehicle, require_plate, resolve_or_create_vehicle
from storage import save_dataset

logger = logging.getLogger(__name__)


def open_stays(session):
    """All open stays, most recent entry first."""
    return (
        session.query(Stay)
        .filter(Stay.exit_at.is_(None))
        .order_by(Stay.entry_at.desc(), Stay.id.desc())
        .all()
    )


def open_stay_for_vehicle(session, vehicle):
    stays = (
        session.query(Stay)
        .filter(Stay.vehicle_id == vehicle.id, Stay.exit_at.is_(None))
        .all()
    )
    if len(stays) > 1:
        raise InvariantViolation(
            f'Vehicle {vehicle.plate} has {len(stays)} open stays'
        )
    return stays[0] if stays else None


def open_stay_for_plate(session, plate):
    vehicle = find_vehicle(session, plate)
    if vehicle is None:
        return None
    return open_stay_for_vehicle(session, vehicle)


def record_entry(session, plate, now=None):
    """
    Open a stay for ``plate``.

    A vehicle that is already inside keeps its open stay; no second stay
    is created.
    """
    vehicle = resolve_or_create_vehicle(session, plate)
    stay = open_stay_for_vehicle(session, vehicle)
    if stay is not None:
        logger.debug('Vehicle %s already inside (stay %s)', vehicle.plate, stay.id)
        save_dataset(session)
        return stay

    stay = Stay(
        vehicle=vehicle,
        entry_at=now or datetime.now(),
        exit_at=None,
        minutes=None,
        amount=0.0,
        rule_desc=None,
    )
    session.add(stay)
    save_dataset(session)
    logger.info('Entry of %s (stay %s)', vehicle.plate, stay.id)
    return stay


def _closable_stay(session, plate):
    normalized = require_plate(plate)
    vehicle = find_vehicle(session, normalized)
    if vehicle is None:
        raise NotFoundError(f'Plate {normalized} not found')
    stay = open_stay_for_vehicle(session, vehicle)
    if stay is None:
        raise NoOpenStayError(normalized)
    return stay


def quote(session, plate, rule=None, now=None):
    """Price the open stay of ``plate`` as if it left now, without closing it."""
    stay = _closable_stay(session, plate)
    rule = rule or pick_active_rule(session)
    if rule is None:
        raise NoPricingRuleError()
    return stay, compute_fee(rule, stay.entry_at, now or datetime.now())


def record_exit(session, plate, method, rule=None, now=None):
    """
    Close the open stay of ``plate`` and take its payment.

    The stay's closing fields and the payment are saved in one commit; when
    anything fails nothing is written.

    Args:
        session: database session holding the dataset
        plate: plate as typed, normalized here
        method: payment method name or PaymentMethod
        rule: pricing rule to apply, defaults to the active one
        now: exit time, defaults to the current time

    Returns:
        tuple: (stay, payment)
    """
    method = parse_method(method)
    stay = _closable_stay(session, plate)
    rule = rule or pick_active_rule(session)
    if rule is None:
        raise NoPricingRuleError()

    exit_at = now or datetime.now()
    try:
        fee = compute_fee(rule, stay.entry_at, exit_at)
        stay.exit_at = exit_at
        stay.minutes = fee.minutes
        stay.amount = fee.amount
        stay.rule_desc = fee.description
        payment = record_payment(session, stay, fee.amount, method, now=exit_at)
    except Exception:
        session.rollback()
        raise
    save_dataset(session)

    logger.info('Exit of %s after %d min: %.2f (%s, shift %s)',
                stay.vehicle.plate, fee.minutes, fee.amount,
                method.value, payment.cash_shift_id)
    return stay, payment
