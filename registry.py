"""
Vehicles, clients, pricing rules and user accounts.

Plates are stored normalized (uppercase, letters and digits only) and are
the natural key of a vehicle.
"""
import logging
import re

from werkzeug.security import check_password_hash

from errors import NotFoundError, ValidationError
from models import Client, PricingRule, RuleStatus, User, Vehicle
from storage import save_dataset

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r'[^A-Z0-9]')


def as_text(value):
    """Text of a form or JSON value; numbers are accepted as their digits."""
    if value is None:
        return ''
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    raise ValidationError(f'Expected text, got {value!r}')


def whole_number(value, label):
    """Integer value of ``value``, rejecting fractions like 7.5."""
    if isinstance(value, bool):
        raise ValidationError(f'Invalid {label}: {value!r}')
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError(f'{label} must be a whole number')
        return int(value)
    if isinstance(value, int):
        return value
    try:
        return int(as_text(value).strip())
    except ValueError:
        raise ValidationError(f'{label} must be a whole number')


def normalize_plate(plate):
    return _NON_ALNUM.sub('', as_text(plate).strip().upper())


def require_plate(plate):
    normalized = normalize_plate(plate)
    if not normalized:
        raise ValidationError('Plate is required')
    return normalized


def find_vehicle(session, plate):
    return session.query(Vehicle).filter_by(plate=normalize_plate(plate)).first()


def resolve_or_create_vehicle(session, plate):
    """
    Return the vehicle registered under ``plate``, creating a bare one if
    none exists. The new vehicle is added to the session but not saved.
    """
    normalized = require_plate(plate)
    vehicle = session.query(Vehicle).filter_by(plate=normalized).first()
    if vehicle is None:
        vehicle = Vehicle(plate=normalized, model='', color='', client_id=None)
        session.add(vehicle)
        session.flush()
        logger.info('Registered vehicle %s', normalized)
    return vehicle


def create_vehicle(session, plate, model='', color='', client_id=None):
    """Register a vehicle. Returns None when the plate already exists."""
    normalized = require_plate(plate)
    if session.query(Vehicle).filter_by(plate=normalized).first():
        logger.debug('Vehicle %s already registered', normalized)
        return None
    if client_id is not None and session.get(Client, client_id) is None:
        raise NotFoundError(f'Client {client_id} not found')

    vehicle = Vehicle(
        plate=normalized,
        model=as_text(model).strip(),
        color=as_text(color).strip(),
        client_id=client_id,
    )
    session.add(vehicle)
    save_dataset(session)
    logger.info('Registered vehicle %s', normalized)
    return vehicle


def list_vehicles(session):
    return session.query(Vehicle).order_by(Vehicle.id.desc()).all()


def create_client(session, name, phone='', notes='', is_vip=False):
    name = as_text(name).strip()
    if not name:
        raise ValidationError('Client name is required')
    client = Client(
        name=name,
        phone=as_text(phone).strip(),
        notes=as_text(notes).strip(),
        is_vip=bool(is_vip),
    )
    session.add(client)
    save_dataset(session)
    return client


def list_clients(session):
    return session.query(Client).order_by(Client.id.desc()).all()


def delete_client(session, client_id):
    """
    Delete a client and detach it from its vehicles.

    Vehicles are kept; their ``client_id`` is set to None.
    """
    client = session.get(Client, client_id)
    if client is None:
        raise NotFoundError(f'Client {client_id} not found')

    detached = (
        session.query(Vehicle)
        .filter_by(client_id=client_id)
        .update({Vehicle.client_id: None}, synchronize_session='fetch')
    )
    session.delete(client)
    save_dataset(session)
    logger.info('Deleted client %s (%d vehicles detached)', client_id, detached)


def create_price_rule(session, name, first_hour_value, fraction_minutes=15,
                      fraction_value=0.0, daily_max=None):
    name = as_text(name).strip()
    if not name:
        raise ValidationError('Rule name is required')
    fraction_minutes = whole_number(fraction_minutes, 'Fraction minutes')
    if fraction_minutes <= 0:
        raise ValidationError('Fraction minutes must be positive')

    rule = PricingRule(
        name=name,
        status=RuleStatus.ACTIVE,
        first_hour_value=float(first_hour_value),
        fraction_minutes=fraction_minutes,
        fraction_value=float(fraction_value),
        daily_max=None if daily_max is None else float(daily_max),
    )
    session.add(rule)
    save_dataset(session)
    logger.info('Created pricing rule %r', name)
    return rule


def toggle_rule_active(session, rule_id):
    rule = session.get(PricingRule, rule_id)
    if rule is None:
        raise NotFoundError(f'Pricing rule {rule_id} not found')
    rule.status = RuleStatus.INACTIVE if rule.active else RuleStatus.ACTIVE
    save_dataset(session)
    logger.info('Pricing rule %r is now %s', rule.name, rule.status.value)
    return rule


def list_price_rules(session):
    return session.query(PricingRule).order_by(PricingRule.id.desc()).all()


def check_credentials(session, username, password):
    user = session.query(User).filter_by(username=as_text(username).strip()).first()
    return user is not None and check_password_hash(user.password_hash, as_text(password))
