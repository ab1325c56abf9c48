import os
import sys
import pytest

# Ensure the project root (containing `core`, `services`, `api`) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

# The module-level engine in database.py must not touch a file during tests
os.environ.setdefault('DATABASE_URL', 'sqlite://')

from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from database import Base, Settings, make_engine, get_db, get_settings
import models  # noqa: F401
from models import ClaimPolicy
from core.round_ledger import RoundLedger
from services.ledger_service import SqlValueLedger, LedgerError
from services.state_service import init_state
from api.dependencies import get_clock

T0 = 1_700_000_000
ADMIN = 'admin'
CUSTODY = 'pot-custody'


class FakeClock:
    def __init__(self, now=T0):
        self.now = now

    def __call__(self):
        return self.now

    def set(self, now):
        self.now = now

    def advance(self, seconds):
        self.now += seconds


class RejectingLedger(SqlValueLedger):
    """Pre-flight passes, but the ledger refuses the pull itself."""

    def pull_transfer(self, source, destination, amount):
        return False


class TimeoutLedger(SqlValueLedger):
    """The ledger client times out instead of answering."""

    def pull_transfer(self, source, destination, amount):
        raise TimeoutError('ledger did not answer')

    def push_transfer(self, source, destination, amount):
        raise TimeoutError('ledger did not answer')


class DroppingLedger(SqlValueLedger):
    """Moves the funds, then reports a failure (e.g. the connection dropped)."""

    def pull_transfer(self, source, destination, amount):
        super().pull_transfer(source, destination, amount)
        raise LedgerError('connection dropped after submit')

    def push_transfer(self, source, destination, amount):
        super().push_transfer(source, destination, amount)
        raise LedgerError('connection dropped after submit')


@pytest.fixture()
def settings():
    return Settings(
        database_url='sqlite://',
        admin_identity=ADMIN,
        custody_identity=CUSTODY,
        initial_stake_amount=10,
        initial_extension_delay=300,
        minimum_stake=1,
        minimum_extension_delay=60,
        claim_policy=ClaimPolicy.WINNER_ONLY.value,
    )


@pytest.fixture()
def engine():
    test_engine = make_engine('sqlite://')
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory, settings):
    session = session_factory()
    init_state(session, settings)
    yield session
    session.close()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def ledger(db):
    return SqlValueLedger(db)


@pytest.fixture()
def round_ledger(ledger, settings, clock):
    return RoundLedger.from_settings(ledger, settings, clock=clock)


@pytest.fixture()
def fund_player(db, ledger):
    """Mint `amount` to `identity` and approve custody for `allowance` (defaults to amount)."""
    def _fund(identity, amount, allowance=None):
        ledger.credit(identity, amount)
        ledger.approve(identity, CUSTODY, amount if allowance is None else allowance)
        db.commit()
    return _fund


@pytest.fixture()
def open_round(db, round_ledger, clock):
    """Start a round closing at T0 + 1000 with stake 10 and delay 300."""
    def _open(close_time=T0 + 1000, delay=300, stake=10):
        return round_ledger.start_round(db, close_time, delay, stake, ADMIN)
    return _open


@pytest.fixture()
def client(db, session_factory, settings, clock):
    # `db` seeds the singleton rows before any request runs
    from main import app

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_clock] = lambda: clock
    yield TestClient(app)
    app.dependency_overrides.clear()
