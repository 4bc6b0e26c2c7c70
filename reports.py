"""
Read-only views over the dataset: dashboard figures and the payments CSV.
"""
from datetime import datetime, timedelta

from sqlalchemy import func

from models import Payment, Setting, Stay

CSV_SEPARATOR = ';'
CSV_COLUMNS = ['paidAt', 'method', 'amount', 'plate', 'entryAt', 'exitAt', 'ruleDesc']


def _day_bounds(day):
    start = datetime.combine(day, datetime.min.time())
    return start, start + timedelta(days=1)


def dashboard(session, day=None):
    """
    Lot occupancy and revenue figures for ``day`` (today by default).

    Returns:
        dict with open stays, free and total spots, revenue and average
        ticket of the day's payments, and the average length in minutes of
        stays closed that day.
    """
    day = day or datetime.now().date()
    start, end = _day_bounds(day)

    setting = session.query(Setting).first()
    total_spots = setting.total_spots if setting else 0
    open_count = session.query(Stay).filter(Stay.exit_at.is_(None)).count()

    paid = session.query(
        func.count(Payment.id), func.coalesce(func.sum(Payment.amount), 0.0)
    ).filter(Payment.paid_at >= start, Payment.paid_at < end).one()
    payments_count, revenue = paid

    closed_minutes = session.query(
        func.avg(Stay.minutes)
    ).filter(Stay.exit_at >= start, Stay.exit_at < end).scalar()

    return {
        'date': day.isoformat(),
        'open_stays': open_count,
        'free_spots': max(total_spots - open_count, 0),
        'total_spots': total_spots,
        'revenue': round(revenue, 2),
        'average_ticket': round(revenue / payments_count, 2) if payments_count else 0.0,
        'average_minutes': round(closed_minutes or 0),
    }


def _clean(value):
    if value is None:
        return ''
    if isinstance(value, datetime):
        value = value.isoformat()
    return str(value).replace(CSV_SEPARATOR, ',')


def payment_rows(session):
    """Payments joined with their stay and vehicle, in payment id order."""
    for payment in session.query(Payment).order_by(Payment.id).all():
        stay = payment.stay
        vehicle = stay.vehicle if stay else None
        yield [
            payment.paid_at,
            payment.method,
            payment.amount,
            vehicle.plate if vehicle else '',
            stay.entry_at if stay else '',
            stay.exit_at if stay else '',
            stay.rule_desc if stay else '',
        ]


def export_payments_csv(session):
    """One `;`-separated line per payment under a header line."""
    lines = [CSV_SEPARATOR.join(CSV_COLUMNS)]
    for row in payment_rows(session):
        lines.append(CSV_SEPARATOR.join(_clean(value) for value in row))
    return '\n'.join(lines) + '\n'
