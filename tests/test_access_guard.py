import pytest

from core.access_guard import AccessGuard
from core.exceptions import Unauthorized, MissingIdentity, InvalidParameter
from models import EventLog
from tests.conftest import ADMIN


@pytest.fixture()
def guard(clock):
    return AccessGuard(clock=clock)


def test_seeded_admin(db, guard):
    assert guard.admin_identity(db) == ADMIN
    assert guard.is_admin(db, ADMIN) is True
    assert guard.is_admin(db, 'alice') is False
    assert guard.is_admin(db, None) is False


def test_require_admin(db, guard):
    guard.require_admin(db, ADMIN)
    with pytest.raises(Unauthorized):
        guard.require_admin(db, 'alice')
    with pytest.raises(MissingIdentity):
        guard.require_admin(db, '')


def test_transfer_moves_capability(db, guard, clock):
    assert guard.transfer(db, 'operator', ADMIN) == 'operator'

    assert guard.is_admin(db, 'operator') is True
    assert guard.is_admin(db, ADMIN) is False

    event = db.query(EventLog).filter(EventLog.event_type == 'ADMIN_TRANSFERRED').one()
    assert event.identity == 'operator'
    assert event.timestamp == clock.now
    assert event.data['previous_admin'] == ADMIN


def test_transfer_by_non_admin_is_rejected(db, guard):
    with pytest.raises(Unauthorized):
        guard.transfer(db, 'mallory', 'mallory')
    assert guard.admin_identity(db) == ADMIN


@pytest.mark.parametrize('new_identity', ['', '   ', None])
def test_transfer_to_empty_identity_is_rejected(db, guard, new_identity):
    with pytest.raises(InvalidParameter) as exc_info:
        guard.transfer(db, new_identity, ADMIN)
    assert exc_info.value.field == 'new_admin'
    assert guard.admin_identity(db) == ADMIN
