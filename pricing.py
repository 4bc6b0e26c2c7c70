import logging
import math
from collections import namedtuple

from models import PricingRule, RuleStatus

logger = logging.getLogger(__name__)

FIRST_HOUR_MINUTES = 60
CAP_MARKER = ' (daily cap)'

Fee = namedtuple('Fee', ['amount', 'minutes', 'description'])


def elapsed_minutes(entry_at, exit_at):
    """Whole minutes between two datetimes, never less than 1."""
    seconds = (exit_at - entry_at).total_seconds()
    return max(1, math.floor(seconds / 60))


def compute_fee(rule, entry_at, exit_at):
    """
    Calculate the parking fee of a stay under a pricing rule.

    The first hour is always charged in full. After that every started
    fraction of ``rule.fraction_minutes`` is charged as a whole fraction.
    The total is clamped to ``rule.daily_max`` when the rule has one.

    Args:
        rule: PricingRule (or any object with the same attributes)
        entry_at: datetime when the vehicle entered
        exit_at: datetime when the vehicle left

    Returns:
        Fee(amount, minutes, description), amount rounded to 2 decimals
    """
    minutes = elapsed_minutes(entry_at, exit_at)

    if minutes <= FIRST_HOUR_MINUTES:
        amount = rule.first_hour_value
        description = f'{rule.name}: up to 1h'
    else:
        extra = minutes - FIRST_HOUR_MINUTES
        fractions = math.ceil(extra / rule.fraction_minutes)
        amount = rule.first_hour_value + fractions * rule.fraction_value
        description = f'{rule.name}: 1h + {fractions}x fraction'

    if rule.daily_max is not None and amount > rule.daily_max:
        amount = rule.daily_max
        description += CAP_MARKER

    return Fee(round(amount, 2), minutes, description)


def pick_active_rule(session):
    """
    Return the first active pricing rule in id order, or None.

    Several active rules are allowed; the lowest id wins and a warning is
    logged so the ambiguity is visible.
    """
    active = (
        session.query(PricingRule)
        .filter(PricingRule.status == RuleStatus.ACTIVE)
        .order_by(PricingRule.id)
        .all()
    )
    if not active:
        return None
    if len(active) > 1:
        logger.warning(
            'Multiple active pricing rules %s, using %r',
            [r.id for r in active], active[0].name
        )
    return active[0]
