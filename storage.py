"""
Dataset persistence: schema creation, default seed, save and reset.

The whole dataset lives in one database. ``load_dataset`` makes sure the
schema exists and seeds the defaults when it is empty; ``save_dataset``
commits every pending change of an operation as a single unit.
"""
import logging

from sqlalchemy.exc import SQLAlchemyError
from werkzeug.security import generate_password_hash

from config import Config
from models import (
    db, Setting, User, PricingRule, RuleStatus, Client, Vehicle, Stay,
    CashShift, Payment,
)

logger = logging.getLogger(__name__)

DEFAULT_USERNAME = 'admin'
DEFAULT_PASSWORD = 'admin123'
DEFAULT_RULE = {
    'name': 'Standard',
    'first_hour_value': 10.0,
    'fraction_minutes': 15,
    'fraction_value': 2.0,
    'daily_max': 30.0,
}

# Children before parents so foreign keys never dangle mid-delete
_DELETE_ORDER = [Payment, Stay, CashShift, Vehicle, Client, PricingRule, User, Setting]


def seed_defaults(session, total_spots=Config.DEFAULT_TOTAL_SPOTS):
    session.add(Setting(total_spots=total_spots))
    session.add(User(
        username=DEFAULT_USERNAME,
        password_hash=generate_password_hash(DEFAULT_PASSWORD),
    ))
    session.add(PricingRule(status=RuleStatus.ACTIVE, **DEFAULT_RULE))
    logger.info('Seeded default dataset (%d spots, rule %r)',
                total_spots, DEFAULT_RULE['name'])


def load_dataset(session, total_spots=Config.DEFAULT_TOTAL_SPOTS):
    """
    Ensure the dataset exists, seeding defaults if it is empty.

    Returns:
        the same session, ready for use by the core operations
    """
    db.metadata.create_all(session.get_bind(), checkfirst=True)
    if session.query(Setting).first() is None:
        seed_defaults(session, total_spots)
        save_dataset(session)
    return session


def save_dataset(session):
    """Commit all pending changes at once; nothing is kept on failure."""
    try:
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception('Failed to save dataset')
        raise


def reset_dataset(session, total_spots=Config.DEFAULT_TOTAL_SPOTS):
    """Drop every record and reseed the defaults."""
    for model in _DELETE_ORDER:
        session.query(model).delete()
    seed_defaults(session, total_spots)
    save_dataset(session)
    logger.info('Dataset reset')


def get_settings(session):
    return session.query(Setting).first()


def update_total_spots(session, total_spots):
    """Set the lot capacity, never below one spot."""
    settings = get_settings(session)
    settings.total_spots = max(1, int(total_spots))
    save_dataset(session)
    return settings
