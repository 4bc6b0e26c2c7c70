"""
Pytest configuration and fixtures for parking system tests.
"""
import pytest
import sys
import os
from datetime import datetime, timedelta

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app import create_app
from models import db, PricingRule, RuleStatus

T0 = datetime(2024, 3, 15, 8, 0, 0)

TEST_CONFIG = {
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'TESTING': True,
    'LOG_LEVEL': 'DEBUG',
}


def make_app():
    """Application on a fresh in-memory SQLite database, already seeded."""
    return create_app(TEST_CONFIG)


@pytest.fixture
def test_app():
    """Create application configured for testing with in-memory SQLite."""
    app = make_app()
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(test_app):
    """Flask test client."""
    return test_app.test_client()


@pytest.fixture
def db_session(test_app):
    """Database session holding the seeded dataset."""
    yield db.session
    db.session.rollback()


@pytest.fixture
def standard_rule(db_session):
    """The seeded default rule."""
    return db_session.query(PricingRule).filter_by(name='Standard').one()


@pytest.fixture
def no_active_rule(db_session):
    """Deactivate every pricing rule."""
    for rule in db_session.query(PricingRule).all():
        rule.status = RuleStatus.INACTIVE
    db_session.commit()


@pytest.fixture
def t0():
    return T0


@pytest.fixture
def later(t0):
    """Build a time ``minutes`` after t0."""
    def _later(minutes):
        return t0 + timedelta(minutes=minutes)
    return _later
