import pytest
import uuid
from decimal import Decimal

from config import Config
from petverse import create_app
from petverse.database import get_session, create_all, drop_all
from petverse.models import (
    User, UserRole, Product, Appointment, Advertisement, AdvertisementStatus
)
from petverse.services.otp_service import OtpGateway, MemoryOtpStore


class FakeClock:
    """Manually advanced clock for OTP expiry."""

    def __init__(self, start=1_700_000_000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application instance for testing."""
    db_path = tmp_path_factory.mktemp('db') / 'petverse-test.sqlite'

    class TestConfig(Config):
        TESTING = True
        SECRET_KEY = 'test-secret'
        SQLALCHEMY_DATABASE_URI = f'sqlite:///{db_path}'
        WTF_CSRF_ENABLED = False
        OTP_STORE_BACKEND = 'memory'
        MAIL_SUPPRESS_SEND = True
        MAIL_ASYNC = False
        ACCEPT_CLIENT_SUBTOTAL = True
        DELIVERY_FEE = 300
        POINT_VALUE = 10

    return create_app(TestConfig)


@pytest.fixture(autouse=True)
def app_context(app):
    """Fresh schema and an app context for every test."""
    with app.app_context():
        get_session().remove()
        drop_all()
        create_all()
        yield
        get_session().remove()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def session():
    """Create database session for testing."""
    session = get_session()
    yield session
    session.rollback()


def _make_user(session, role=UserRole.PET_OWNER, loyalty_points=0):
    suffix = str(uuid.uuid4())[:8]
    user = User(
        external_uid=f'uid-{suffix}',
        email=f'{role.value}-{suffix}@test.com',
        full_name=f'Test {role.value}',
        role=role.value,
        loyalty_points=loyalty_points,
        active=True
    )
    session.add(user)
    session.commit()
    return user


@pytest.fixture(scope='function')
def pet_owner(session):
    """Pet owner with 100 loyalty points."""
    return _make_user(session, UserRole.PET_OWNER, loyalty_points=100)


@pytest.fixture(scope='function')
def other_owner(session):
    return _make_user(session, UserRole.PET_OWNER)


@pytest.fixture(scope='function')
def admin_user(session):
    return _make_user(session, UserRole.ADMIN)


@pytest.fixture(scope='function')
def provider(session):
    return _make_user(session, UserRole.SERVICE_PROVIDER)


@pytest.fixture(scope='function')
def make_product(session):
    """Factory for catalog products."""
    def _make(code, quantity, price='100.00', name=None, active=True):
        product = Product(
            code=code,
            name=name or f'Product {code}',
            price=Decimal(price),
            quantity=quantity,
            active=active
        )
        session.add(product)
        session.commit()
        return product
    return _make


@pytest.fixture(scope='function')
def appointment(session, pet_owner):
    """Premium appointment owned by pet_owner."""
    appt = Appointment(
        appointment_code=f'APT-{uuid.uuid4().hex[:8]}',
        user_uid=pet_owner.external_uid,
        package='Premium',
        package_price=Decimal('2500.00'),
        pet_name='Rex'
    )
    session.add(appt)
    session.commit()
    return appt


@pytest.fixture(scope='function')
def advertisement(session, provider):
    ad = Advertisement(
        provider_id=provider.id,
        title='Grooming at home',
        duration_days=7,
        status=AdvertisementStatus.PENDING.value
    )
    session.add(ad)
    session.commit()
    return ad


@pytest.fixture(scope='function')
def login_as(client):
    """Sign the test client in as the given user."""
    def _login(user):
        with client.session_transaction() as sess:
            sess['user_id'] = user.id
        return client
    return _login


@pytest.fixture(scope='function')
def owner_client(login_as, pet_owner):
    """Authenticated client for pet_owner."""
    return login_as(pet_owner)


@pytest.fixture(scope='function')
def admin_client(login_as, admin_user):
    return login_as(admin_user)


@pytest.fixture(scope='function')
def sent_codes():
    """Codes handed to the notification sink, as (destination, code, minutes)."""
    return []


@pytest.fixture(scope='function')
def clock():
    return FakeClock()


@pytest.fixture(scope='function')
def otp_gateway(app, sent_codes, clock):
    """In-memory gateway with a controllable clock, installed on the app."""
    previous = app.extensions.get('otp_gateway')
    gateway = OtpGateway(
        MemoryOtpStore(),
        notifier=lambda destination, code, minutes: sent_codes.append((destination, code, minutes)),
        ttl_seconds=300,
        clock=clock,
    )
    app.extensions['otp_gateway'] = gateway
    yield gateway
    app.extensions['otp_gateway'] = previous
