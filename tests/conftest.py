"""Shared fixtures."""
import pytest
from flask_jwt_extended import create_access_token
from vaultpark import create_app, db
from vaultpark.models.user import User, UserRole
from vaultpark.models.pricing_tier import PricingTier

T0 = 1_700_000_000_000  # 2023-11-14T22:13:20Z

class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, start: int = T0):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> int:
        self.now += ms
        return self.now

@pytest.fixture
def clock():
    return FakeClock()

@pytest.fixture
def app(clock):
    """Create test app."""
    app = create_app('testing')
    app.config['CLOCK'] = clock
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()

@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()

@pytest.fixture
def gold_tier(app):
    tier = PricingTier(membership_type='Gold', hourly_rate=5.0, daily_cap=40.0)
    return tier.save()

@pytest.fixture
def driver(app):
    user = User(
        id='u1',
        email='driver@example.com',
        name='Test Driver',
        role=UserRole.DRIVER,
        vehicle_number='KA01AB1234'
    )
    user.set_password('password123')
    return user.save()

@pytest.fixture
def other_driver(app):
    user = User(
        id='u2',
        email='driver2@example.com',
        name='Second Driver',
        role=UserRole.DRIVER,
        vehicle_number='WP-CAB-4521'
    )
    user.set_password('password123')
    return user.save()

@pytest.fixture
def guard(app):
    user = User(
        id='g1',
        email='guard@example.com',
        name='Gate Guard',
        role=UserRole.SECURITY
    )
    user.set_password('password123')
    return user.save()

def auth_header(user_id: str) -> dict:
    return {'Authorization': f'Bearer {create_access_token(identity=user_id)}'}

@pytest.fixture
def driver_headers(driver):
    return auth_header(driver.id)

@pytest.fixture
def guard_headers(guard):
    return auth_header(guard.id)

@pytest.fixture
def other_driver_headers(other_driver):
    return auth_header(other_driver.id)
