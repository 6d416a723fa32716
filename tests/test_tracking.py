"""Tests for tracking tokens, affiliate link generation and click/purchase tracking."""

import pytest

from kol_back.database.models import InfluencerAffiliateLink, KolAffiliateStats
from kol_back.utils.tracking_token import InvalidTrackingToken, decode_token, encode_token

SECRET = 'test-secret'
DAY_MS = 24 * 60 * 60 * 1000


# ============================================================================
# Token signing
# ============================================================================

def test_token_decodes_payload():
    token = encode_token(SECRET, 3, 4, 5, timestamp_ms=1_700_000_000_000)
    payload = decode_token(SECRET, token, max_age_days=365, now_ms=1_700_000_000_000 + DAY_MS)
    assert (payload.kol_id, payload.product_id, payload.link_id) == (3, 4, 5)


def test_tampered_payload_is_rejected():
    token = encode_token(SECRET, 3, 4, 5)
    other = encode_token(SECRET, 9, 4, 5)
    forged = other.rpartition('.')[0] + '.' + token.rpartition('.')[2]
    with pytest.raises(InvalidTrackingToken, match='Invalid signature'):
        decode_token(SECRET, forged, max_age_days=365)


def test_token_signed_with_other_secret_is_rejected():
    token = encode_token('another-secret', 3, 4, 5)
    with pytest.raises(InvalidTrackingToken):
        decode_token(SECRET, token, max_age_days=365)


def test_expired_token_is_rejected():
    token = encode_token(SECRET, 3, 4, 5, timestamp_ms=0)
    with pytest.raises(InvalidTrackingToken, match='expired'):
        decode_token(SECRET, token, max_age_days=365, now_ms=366 * DAY_MS)


@pytest.mark.parametrize('token', ['', 'no-signature', '.abc', '!!!.deadbeef'])
def test_malformed_token_is_rejected(token):
    with pytest.raises(InvalidTrackingToken):
        decode_token(SECRET, token, max_age_days=365)


# ============================================================================
# Link generation and redirect
# ============================================================================

@pytest.fixture
def kol_and_product(seed):
    kol = seed.kol('alice')
    product, _ = seed.product('Lamp', rate=10, price=50.0)
    return kol, product


def create_link(client, kol, product):
    return client.post('/kol/links', json={'kol_id': kol.influencer_id, 'product_id': product.product_id})


def test_generate_link_is_idempotent(client, db, kol_and_product):
    kol, product = kol_and_product

    first = create_link(client, kol, product)
    assert first.status_code == 201
    link_url = first.json()['data']['affiliate_link']
    assert link_url.startswith('http://shop.test/api/track/')

    second = create_link(client, kol, product)
    assert second.status_code == 200
    assert second.json()['message'] == 'Affiliate link already exists'
    assert second.json()['data'] == first.json()['data']
    assert db.query(InfluencerAffiliateLink).count() == 1


def test_generate_link_validation(client, seed, kol_and_product):
    kol, product = kol_and_product
    no_rate, _ = seed.product('Freebie', rate=None)

    assert client.post('/kol/links', json={'kol_id': 999, 'product_id': product.product_id}).status_code == 404
    assert client.post('/kol/links', json={'kol_id': kol.influencer_id, 'product_id': 999}).status_code == 404
    resp = create_link(client, kol, no_rate)
    assert resp.status_code == 400
    assert resp.json()['message'] == 'This product does not have a commission rate set'


def test_click_redirects_to_product_and_counts(client, db, kol_and_product):
    kol, product = kol_and_product
    link_url = create_link(client, kol, product).json()['data']['affiliate_link']

    resp = client.get(link_url.replace('http://shop.test', ''), follow_redirects=False)
    assert resp.status_code == 302
    assert resp.headers['location'] == f'http://shop.test/product/{product.product_id}'
    assert 'kol_affiliate=' in resp.headers['set-cookie']

    stats = db.query(KolAffiliateStats).filter_by(kol_id=kol.influencer_id, product_id=product.product_id).one()
    db.refresh(stats)
    assert stats.clicks == 1
    assert stats.day_of_week is not None


def test_invalid_token_redirects_home(client, kol_and_product):
    resp = client.get('/api/track/not-a-token', follow_redirects=False)
    assert resp.status_code == 302
    assert resp.headers['location'] == 'http://shop.test'
    assert 'set-cookie' not in resp.headers


def test_token_for_unknown_link_redirects_home(client, kol_and_product):
    kol, product = kol_and_product
    token = encode_token(SECRET, kol.influencer_id, product.product_id, 999)
    resp = client.get(f'/api/track/{token}', follow_redirects=False)
    assert resp.headers['location'] == 'http://shop.test'


def test_track_purchase_updates_conversion(client, db, kol_and_product):
    kol, product = kol_and_product
    data = create_link(client, kol, product).json()['data']
    client.get(data['affiliate_link'].replace('http://shop.test', ''), follow_redirects=False)

    resp = client.post(f'/api/track/purchase/{data["link_id"]}', json={'amount': 50.0})
    assert resp.status_code == 200
    assert resp.json()['message'] == 'Purchase tracked successfully'

    stats = db.query(KolAffiliateStats).filter_by(kol_id=kol.influencer_id).one()
    db.refresh(stats)
    assert stats.successful_purchases == 1
    assert stats.conversion_rate == pytest.approx(100.0)


def test_track_purchase_validation(client):
    assert client.post('/api/track/purchase/999', json={'amount': 10}).status_code == 404
    assert client.post('/api/track/purchase/1', json={'amount': 0}).status_code == 422
