from fastapi import Depends
from sqlalchemy.orm import Session

from database import get_db
from api.dependencies import get_ledger
from tests.conftest import T0, ADMIN, CUSTODY, RejectingLedger

ADMIN_HEADERS = {'X-Identity': ADMIN}


def as_(identity):
    return {'X-Identity': identity}


def mint_and_approve(client, identity, amount):
    res = client.post('/api/ledger/mint', json={'identity': identity, 'amount': amount}, headers=ADMIN_HEADERS)
    assert res.status_code == 200
    res = client.post('/api/ledger/approve', json={'amount': amount}, headers=as_(identity))
    assert res.status_code == 200
    return res.json()


def start(client, close_time=T0 + 1000, delay=300, stake=10, headers=ADMIN_HEADERS):
    return client.post(
        '/api/round/start',
        json={'close_time': close_time, 'extension_delay': delay, 'stake_amount': stake},
        headers=headers,
    )


def test_health(client):
    assert client.get('/health').json() == {'status': 'healthy'}


def test_initial_status(client):
    res = client.get('/api/round')
    assert res.status_code == 200
    data = res.json()
    assert data['is_active'] is False
    assert data['fund'] == 0
    assert data['round_number'] == 0
    assert data['claim_policy'] == 'winner_only'


def test_individual_queries(client):
    assert start(client).status_code == 200

    assert client.get('/api/round/active').json() == {'name': 'is_active', 'value': True}
    assert client.get('/api/round/fund').json()['value'] == 0
    assert client.get('/api/round/close-time').json()['value'] == T0 + 1000
    assert client.get('/api/round/extension-delay').json()['value'] == 300
    assert client.get('/api/round/stake').json()['value'] == 10
    assert client.get('/api/round/last-contribution-time').json()['value'] is None


def test_ledger_account_endpoints(client):
    data = mint_and_approve(client, 'alice', 50)
    assert data == {'identity': 'alice', 'balance': 50, 'allowance': 50}

    res = client.get('/api/ledger/alice')
    assert res.json()['balance'] == 50


def test_mint_requires_admin(client):
    res = client.post('/api/ledger/mint', json={'identity': 'alice', 'amount': 5}, headers=as_('alice'))
    assert res.status_code == 403
    assert res.json()['detail']['error'] == 'Unauthorized'


def test_approve_requires_identity(client):
    res = client.post('/api/ledger/approve', json={'amount': 5})
    assert res.status_code == 401


def test_start_round_by_non_admin(client):
    res = start(client, headers=as_('mallory'))
    assert res.status_code == 403


def test_start_round_with_past_close_time(client):
    res = start(client, close_time=T0)
    assert res.status_code == 422
    assert res.json()['detail']['field'] == 'close_time'
    assert client.get('/api/round').json()['round_number'] == 0


def test_bet_and_claim_flow(client, clock):
    mint_and_approve(client, 'alice', 100)
    mint_and_approve(client, 'bob', 100)
    assert start(client).status_code == 200

    res = client.post('/api/round/bet', headers=as_('alice'))
    assert res.status_code == 200
    assert res.json()['fund'] == 10

    res = client.post('/api/round/bet', headers=as_('bob'))
    assert res.status_code == 200
    assert res.json()['close_time'] == T0 + 1600

    res = client.post('/api/round/claim', headers=as_('bob'))
    assert res.status_code == 409
    assert res.json()['detail']['error'] == 'RoundStillActive'

    clock.set(T0 + 1600)
    res = client.post('/api/round/bet', headers=as_('alice'))
    assert res.status_code == 409
    assert res.json()['detail']['error'] == 'RoundNotActive'

    res = client.post('/api/round/claim', headers=as_('alice'))
    assert res.status_code == 403

    res = client.post('/api/round/claim', headers=as_('bob'))
    assert res.status_code == 200
    assert res.json() == {'winner': 'bob', 'amount': 20, 'timestamp': T0 + 1600, 'round_number': 1}

    res = client.post('/api/round/claim', headers=as_('bob'))
    assert res.status_code == 409
    assert res.json()['detail']['error'] == 'PrizeFundEmpty'

    assert client.get('/api/ledger/bob').json()['balance'] == 110
    assert client.get(f'/api/ledger/{CUSTODY}').json()['balance'] == 0


def test_bet_without_identity(client):
    start(client)
    res = client.post('/api/round/bet')
    assert res.status_code == 401
    assert res.json()['detail']['error'] == 'MissingIdentity'


def test_bet_with_insufficient_balance(client):
    start(client)
    res = client.post('/api/round/bet', headers=as_('alice'))
    assert res.status_code == 402
    assert res.json()['detail']['error'] == 'InsufficientBalance'


def test_bet_with_insufficient_authorization(client):
    start(client)
    client.post('/api/ledger/mint', json={'identity': 'alice', 'amount': 100}, headers=ADMIN_HEADERS)
    res = client.post('/api/round/bet', headers=as_('alice'))
    assert res.status_code == 402
    assert res.json()['detail']['error'] == 'InsufficientAuthorization'


def test_transfer_failure_maps_to_bad_gateway(client):
    mint_and_approve(client, 'alice', 100)
    start(client)

    def _rejecting_ledger(db: Session = Depends(get_db)):
        return RejectingLedger(db)

    from main import app
    app.dependency_overrides[get_ledger] = _rejecting_ledger

    res = client.post('/api/round/bet', headers=as_('alice'))
    assert res.status_code == 502
    assert res.json()['detail']['error'] == 'TransferFailed'

    del app.dependency_overrides[get_ledger]
    assert client.get('/api/round/fund').json()['value'] == 0
    assert client.get('/api/ledger/alice').json()['balance'] == 100


def test_start_round_with_unclaimed_fund(client, clock):
    mint_and_approve(client, 'alice', 100)
    start(client)
    client.post('/api/round/bet', headers=as_('alice'))

    clock.set(T0 + 100_000)
    res = start(client, close_time=T0 + 200_000)
    assert res.status_code == 409
    assert res.json()['detail']['error'] == 'PrizeFundNotEmpty'


def test_transfer_admin(client):
    res = client.post('/api/admin/transfer', json={'new_admin': 'operator'}, headers=as_('alice'))
    assert res.status_code == 403

    res = client.post('/api/admin/transfer', json={'new_admin': '  '}, headers=ADMIN_HEADERS)
    assert res.status_code == 422
    assert res.json()['detail']['field'] == 'new_admin'

    res = client.post('/api/admin/transfer', json={'new_admin': 'operator'}, headers=ADMIN_HEADERS)
    assert res.status_code == 200
    assert client.get('/api/admin').json() == {'admin': 'operator'}

    assert start(client).status_code == 403
    assert start(client, headers=as_('operator')).status_code == 200


def test_events_feed(client, clock):
    mint_and_approve(client, 'alice', 100)
    start(client)
    client.post('/api/round/bet', headers=as_('alice'))

    events = client.get('/api/events').json()['events']
    assert [e['event_type'] for e in events] == ['BET_PLACED', 'ROUND_STARTED']
    assert events[0]['identity'] == 'alice'
    assert events[0]['amount'] == 10
    assert events[0]['timestamp'] == T0

    only_bets = client.get('/api/events', params={'event_type': 'BET_PLACED'}).json()['events']
    assert len(only_bets) == 1

    assert client.get('/api/events', params={'event_type': 'NOPE'}).status_code == 422
