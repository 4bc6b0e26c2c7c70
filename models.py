import enum
from datetime import datetime

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# AUTOINCREMENT keeps ids increasing and never reused after deletes
AUTOINCREMENT = {'sqlite_autoincrement': True}


class RuleStatus(enum.Enum):
    ACTIVE = 'active'
    INACTIVE = 'inactive'


class PaymentMethod(enum.Enum):
    CASH = 'cash'
    CARD = 'card'
    PIX = 'pix'


class Setting(db.Model):
    __table_args__ = AUTOINCREMENT
    id = db.Column(db.Integer, primary_key=True)
    total_spots = db.Column(db.Integer, nullable=False, default=50)


class User(db.Model):
    __table_args__ = AUTOINCREMENT
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(50), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)


class PricingRule(db.Model):
    __tablename__ = 'pricing_rule'
    __table_args__ = AUTOINCREMENT
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    status = db.Column(db.Enum(RuleStatus), nullable=False, default=RuleStatus.ACTIVE)
    first_hour_value = db.Column(db.Float, nullable=False)
    fraction_minutes = db.Column(db.Integer, nullable=False, default=15)
    fraction_value = db.Column(db.Float, nullable=False, default=0.0)
    daily_max = db.Column(db.Float, nullable=True)  # None means no cap

    @property
    def active(self):
        return self.status == RuleStatus.ACTIVE


class Client(db.Model):
    __table_args__ = AUTOINCREMENT
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(30), nullable=False, default='')
    notes = db.Column(db.Text, nullable=False, default='')
    is_vip = db.Column(db.Boolean, nullable=False, default=False)


class Vehicle(db.Model):
    __table_args__ = AUTOINCREMENT
    id = db.Column(db.Integer, primary_key=True)
    plate = db.Column(db.String(20), unique=True, nullable=False)  # normalized
    model = db.Column(db.String(50), nullable=False, default='')
    color = db.Column(db.String(30), nullable=False, default='')
    client_id = db.Column(
        db.Integer, db.ForeignKey('client.id', ondelete='SET NULL'), nullable=True
    )

    client = db.relationship('Client')


class Stay(db.Model):
    __table_args__ = AUTOINCREMENT
    id = db.Column(db.Integer, primary_key=True)
    vehicle_id = db.Column(db.Integer, db.ForeignKey('vehicle.id'), nullable=False)
    entry_at = db.Column(db.DateTime, nullable=False, default=datetime.now)
    exit_at = db.Column(db.DateTime, nullable=True)  # None while open
    minutes = db.Column(db.Integer, nullable=True)
    amount = db.Column(db.Float, nullable=False, default=0.0)
    rule_desc = db.Column(db.String(200), nullable=True)

    vehicle = db.relationship('Vehicle')

    @property
    def is_open(self):
        return self.exit_at is None


class CashShift(db.Model):
    __tablename__ = 'cash_shift'
    __table_args__ = AUTOINCREMENT
    id = db.Column(db.Integer, primary_key=True)
    opened_at = db.Column(db.DateTime, nullable=False, default=datetime.now)
    closed_at = db.Column(db.DateTime, nullable=True)  # None while open
    initial_amount = db.Column(db.Float, nullable=False, default=0.0)

    @property
    def is_open(self):
        return self.closed_at is None


class Payment(db.Model):
    __table_args__ = AUTOINCREMENT
    id = db.Column(db.Integer, primary_key=True)
    stay_id = db.Column(db.Integer, db.ForeignKey('stay.id'), nullable=False)
    paid_at = db.Column(db.DateTime, nullable=False, default=datetime.now)
    method = db.Column(db.String(20), nullable=False)
    amount = db.Column(db.Float, nullable=False)
    cash_shift_id = db.Column(db.Integer, db.ForeignKey('cash_shift.id'), nullable=True)

    stay = db.relationship('Stay')
    cash_shift = db.relationship('CashShift')
