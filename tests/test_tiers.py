"""Tests for KOL tier management endpoints."""


def test_create_and_list_tiers(client):
    resp = client.post('/kol/tiers', json={'tier_name': 'Gold', 'min_successful_purchases': 50, 'commission_rate': 8})
    assert resp.status_code == 201
    assert resp.json()['tier_name'] == 'Gold'

    client.post('/kol/tiers', json={'tier_name': 'Bronze', 'min_successful_purchases': 0, 'commission_rate': 2})
    names = [t['tier_name'] for t in client.get('/kol/tiers').json()]
    assert names == ['Bronze', 'Gold']


def test_create_tier_validation(client):
    resp = client.post('/kol/tiers', json={'tier_name': 'Huge', 'min_successful_purchases': 0, 'commission_rate': 31})
    assert resp.status_code == 400
    assert resp.json()['message'] == 'Commission rate must be between 0 and 30'

    resp = client.post('/kol/tiers', json={'tier_name': 'Neg', 'min_successful_purchases': -1, 'commission_rate': 1})
    assert resp.status_code == 400

    client.post('/kol/tiers', json={'tier_name': 'Gold', 'min_successful_purchases': 0, 'commission_rate': 5})
    resp = client.post('/kol/tiers', json={'tier_name': 'Gold', 'min_successful_purchases': 0, 'commission_rate': 5})
    assert resp.status_code == 400
    assert resp.json()['message'] == 'A tier with this name already exists'


def test_update_tier_allows_higher_rate(client, seed):
    tier = seed.tier('Gold', rate=5)
    resp = client.put(f'/kol/tiers/{tier.tier_id}', json={'commission_rate': 45})
    assert resp.status_code == 200
    assert resp.json()['commission_rate'] == 45.0
    assert resp.json()['tier_name'] == 'Gold'

    assert client.put(f'/kol/tiers/{tier.tier_id}', json={'commission_rate': 101}).status_code == 400
    assert client.put('/kol/tiers/999', json={'commission_rate': 1}).status_code == 404


def test_delete_tier_in_use_is_refused(client, seed):
    used = seed.tier('Gold', rate=5)
    unused = seed.tier('Bronze', rate=1)
    seed.kol('alice', tier=used)

    resp = client.delete(f'/kol/tiers/{used.tier_id}')
    assert resp.status_code == 400
    assert resp.json()['message'] == 'Cannot delete tier that is being used by influencers'

    assert client.delete(f'/kol/tiers/{unused.tier_id}').status_code == 200
    assert client.get(f'/kol/tiers/{unused.tier_id}').status_code == 404
