"""Tests for payout generation, detail, status updates, listing and export."""

import warnings
from datetime import date, datetime
from io import BytesIO

import pytest
from openpyxl import load_workbook
from sqlalchemy.exc import SAWarning

from kol_back.database.models import KolPayout, KolPayoutItem, OrderItem
from kol_back.repositories import AttributionRepository, KolRepository, PayoutRepository
from kol_back.services.payout_service import PayoutService

JAN_START = date(2024, 1, 1)
JAN_END = date(2024, 1, 31)


def make_service(db):
    return PayoutService(
        db=db,
        payout_repo=PayoutRepository(db),
        attribution_repo=AttributionRepository(db),
        kol_repo=KolRepository(db),
    )


@pytest.fixture
def delivered_sale(seed):
    """一个已送达订单，两条明细经同一KOL同一商品链接（商品10%，等级5%，金额100与50）"""
    tier = seed.tier('Gold', rate=5)
    kol = seed.kol('alice', tier=tier)
    product, inventory = seed.product('Lamp', rate=10, price=50.0)
    link = seed.link(kol, product)
    order = seed.order([(inventory, 2, link), (inventory, 1, link)], status='delivered')
    return kol, product, order


def test_generate_single_payout_for_two_items(db, delivered_sale):
    kol, _, order = delivered_sale
    result = make_service(db).generate_payouts(JAN_START, JAN_END, [kol.influencer_id])

    assert len(result['payouts']) == 1
    payout = result['payouts'][0]
    assert payout.kol_id == kol.influencer_id
    assert payout.total_amount == pytest.approx(22.5)
    assert payout.payment_status == 'pending'
    assert payout.notes == 'Commission for 1 orders from 2024-01-01 to 2024-01-31'
    assert result['skipped_kol_ids'] == []
    assert result['total_amount'] == pytest.approx(22.5)

    items = db.query(KolPayoutItem).filter_by(payout_id=payout.payout_id).order_by(KolPayoutItem.order_item_id).all()
    assert [i.amount for i in items] == [pytest.approx(15.0), pytest.approx(7.5)]
    assert {i.order_id for i in items} == {order.order_id}


def test_generate_twice_skips_already_paid_kol(db, delivered_sale):
    kol, _, _ = delivered_sale
    service = make_service(db)
    service.generate_payouts(JAN_START, JAN_END, [kol.influencer_id])

    second = service.generate_payouts(JAN_START, JAN_END, [kol.influencer_id])
    assert second['payouts'] == []
    assert second['skipped_kol_ids'] == [kol.influencer_id]
    assert db.query(KolPayout).count() == 1


def test_failed_payout_does_not_block_regeneration(db, delivered_sale):
    kol, _, _ = delivered_sale
    service = make_service(db)
    first = service.generate_payouts(JAN_START, JAN_END, [kol.influencer_id])
    service.update_status(first['payouts'][0].payout_id, 'failed')

    second = service.generate_payouts(JAN_START, JAN_END, [kol.influencer_id])
    assert len(second['payouts']) == 1
    assert second['payouts'][0].total_amount == pytest.approx(22.5)
    assert second['skipped_kol_ids'] == []


def test_kol_without_commission_gets_no_payout_and_is_not_skipped(db, seed, delivered_sale):
    kol, _, _ = delivered_sale
    idle = seed.kol('bob')
    result = make_service(db).generate_payouts(JAN_START, JAN_END, [kol.influencer_id, idle.influencer_id])

    assert [p.kol_id for p in result['payouts']] == [kol.influencer_id]
    assert result['skipped_kol_ids'] == []


def test_orders_outside_range_or_not_delivered_are_ignored(db, seed):
    kol = seed.kol('carol')
    product, inventory = seed.product('Desk', rate=10, price=100.0)
    link = seed.link(kol, product)
    seed.order([(inventory, 1, link)], status='cancelled')
    seed.order([(inventory, 1, link)], status='pending')
    seed.order([(inventory, 1, link)], status='delivered', created_at=datetime(2024, 2, 1, 0, 0))

    result = make_service(db).generate_payouts(JAN_START, JAN_END, [kol.influencer_id])
    assert result['payouts'] == []
    assert db.query(KolPayout).count() == 0


def test_end_date_includes_whole_day(db, seed):
    kol = seed.kol('dave')
    product, inventory = seed.product('Chair', rate=10, price=100.0)
    link = seed.link(kol, product)
    seed.order([(inventory, 1, link)], status='completed', created_at=datetime(2024, 1, 31, 23, 30))

    result = make_service(db).generate_payouts(JAN_START, JAN_END, [kol.influencer_id])
    assert result['total_amount'] == pytest.approx(10.0)


def test_generation_rolls_back_on_failure(db, delivered_sale, monkeypatch):
    kol, _, _ = delivered_sale
    service = make_service(db)

    def broken_add_items(payout_id, items):
        raise RuntimeError('disk full')

    monkeypatch.setattr(service.payout_repo, 'add_items', broken_add_items)
    with pytest.raises(RuntimeError):
        service.generate_payouts(JAN_START, JAN_END, [kol.influencer_id])

    assert db.query(KolPayout).count() == 0
    assert db.query(KolPayoutItem).count() == 0


def test_generate_validates_input(db):
    service = make_service(db)
    with pytest.raises(ValueError, match='required'):
        service.generate_payouts(None, JAN_END, [1])
    with pytest.raises(ValueError, match='on or before'):
        service.generate_payouts(JAN_END, JAN_START, [1])
    with pytest.raises(ValueError, match='influencer'):
        service.generate_payouts(JAN_START, JAN_END, [])


def test_payout_detail_uses_recorded_items(db, delivered_sale):
    kol, _, order = delivered_sale
    service = make_service(db)
    payout = service.generate_payouts(JAN_START, JAN_END, [kol.influencer_id])['payouts'][0]

    detail = service.get_detail(payout.payout_id)
    assert detail['coverage'] == 'explicit'
    assert detail['kol']['kol_name'] == 'alice'
    assert detail['kol']['tier_name'] == 'Gold'
    assert detail['summary']['total_revenue'] == pytest.approx(150.0)
    assert detail['summary']['commission']['total'] == pytest.approx(22.5)
    assert [o['order_id'] for o in detail['orders']] == [order.order_id]
    assert len(detail['orders'][0]['items']) == 2


def test_payout_detail_falls_back_to_creation_time(db, delivered_sale):
    kol, _, _ = delivered_sale
    legacy = KolPayout(kol_id=kol.influencer_id, total_amount=22.5, payment_status='completed',
                       payout_date=date(2024, 2, 1), created_at=datetime(2024, 2, 1, 9, 0))
    db.add(legacy)
    db.commit()

    detail = make_service(db).get_detail(legacy.payout_id)
    assert detail['coverage'] == 'timestamp'
    assert detail['summary']['commission']['total'] == pytest.approx(22.5)


def test_detail_and_status_update_for_unknown_payout(db):
    service = make_service(db)
    with pytest.raises(LookupError):
        service.get_detail(999)
    with pytest.raises(LookupError):
        service.update_status(999, 'completed')


def test_eligible_preview_does_not_write(db, seed, delivered_sale):
    seed.kol('inactive', status='suspended')
    data = make_service(db).get_eligible(JAN_START, JAN_END)

    assert [k['kol_id'] for k in data['kols']] == [delivered_sale[0].influencer_id]
    assert data['total_eligible_amount'] == pytest.approx(22.5)
    assert db.query(KolPayout).count() == 0


# ============================================================================
# HTTP endpoints
# ============================================================================

def test_generate_endpoint(client, delivered_sale):
    kol, _, _ = delivered_sale
    body = {'start_date': '2024-01-01', 'end_date': '2024-01-31', 'influencer_ids': [kol.influencer_id]}

    resp = client.post('/kol/payouts/generate', json=body)
    assert resp.status_code == 200
    data = resp.json()
    assert data['success'] is True
    assert data['message'] == 'Generated 1 payouts'
    assert data['data']['total_amount'] == pytest.approx(22.5)

    resp = client.post('/kol/payouts/generate', json=body)
    assert resp.json()['message'] == 'No payouts generated; skipped 1 KOLs already paid for this period'


def test_generate_endpoint_rejects_reversed_range(client):
    resp = client.post('/kol/payouts/generate',
                       json={'start_date': '2024-02-01', 'end_date': '2024-01-01', 'influencer_ids': [1]})
    assert resp.status_code == 400
    assert resp.json()['success'] is False


def test_status_update_endpoint(client, db, delivered_sale):
    kol, _, _ = delivered_sale
    payout = make_service(db).generate_payouts(JAN_START, JAN_END, [kol.influencer_id])['payouts'][0]

    resp = client.put(f'/kol/payouts/{payout.payout_id}/status',
                      json={'payment_status': 'completed', 'notes': 'paid by transfer'})
    assert resp.status_code == 200
    assert resp.json()['data']['payment_status'] == 'completed'
    assert resp.json()['data']['notes'] == 'paid by transfer'

    assert client.put(f'/kol/payouts/{payout.payout_id}/status',
                      json={'payment_status': 'refunded'}).status_code == 422
    assert client.put('/kol/payouts/999/status', json={'payment_status': 'failed'}).status_code == 404


def test_list_endpoint_with_stats(client, db, seed, delivered_sale):
    kol, _, _ = delivered_sale
    make_service(db).generate_payouts(JAN_START, JAN_END, [kol.influencer_id])

    resp = client.get('/kol/payouts', params={'search': 'alice'})
    assert resp.status_code == 200
    data = resp.json()
    assert data['total'] == 1
    assert data['data'][0]['kol_name'] == 'alice'
    assert data['data'][0]['kol_email'] == 'alice@example.com'
    assert data['stats']['pending_count'] == 1
    assert data['stats']['pending_amount'] == pytest.approx(22.5)

    assert client.get('/kol/payouts', params={'search': 'nobody'}).json()['total'] == 0
    assert client.get('/kol/payouts', params={'status': 'completed'}).json()['total'] == 0


def test_detail_endpoint(client, db, delivered_sale):
    kol, _, _ = delivered_sale
    payout = make_service(db).generate_payouts(JAN_START, JAN_END, [kol.influencer_id])['payouts'][0]

    resp = client.get(f'/kol/payouts/{payout.payout_id}')
    assert resp.status_code == 200
    assert resp.json()['data']['coverage'] == 'explicit'
    assert client.get('/kol/payouts/999').status_code == 404


def test_eligible_endpoint_requires_dates(client):
    resp = client.get('/kol/payouts/eligible')
    assert resp.status_code == 400
    assert resp.json()['message'] == 'Start date and end date are required'


def test_export_endpoint(client, db, delivered_sale):
    kol, _, _ = delivered_sale
    make_service(db).generate_payouts(JAN_START, JAN_END, [kol.influencer_id])
    today = date.today().isoformat()

    resp = client.get('/kol/payouts/export', params={'start_date': today, 'end_date': today})
    assert resp.status_code == 200
    assert resp.headers['content-type'].startswith('application/vnd.openxmlformats')

    wb = load_workbook(BytesIO(resp.content))
    assert wb.sheetnames == ['Summary', 'Payout Details']
    rows = list(wb['Payout Details'].iter_rows(values_only=True))
    assert rows[0][0] == 'Payout ID'
    assert len(rows) == 2
    assert rows[1][2] == 'alice'
    assert rows[1][4] == pytest.approx(22.5)


# ============================================================================
# Coverage of previously paid order items
# ============================================================================

def _pay_items_before_window(db, kol, order, status):
    """在结算区间开始前已有一张覆盖该订单全部明细的结算单"""
    earlier = KolPayout(kol_id=kol.influencer_id, total_amount=22.5, payment_status=status,
                        payout_date=date(2024, 1, 5), created_at=datetime(2024, 1, 5, 9, 0))
    db.add(earlier)
    db.flush()
    for item in db.query(OrderItem).filter_by(order_id=order.order_id).all():
        db.add(KolPayoutItem(payout_id=earlier.payout_id, order_item_id=item.order_item_id,
                             order_id=order.order_id, amount=7.5))
    db.commit()
    return earlier


@pytest.mark.parametrize('status', ['pending', 'completed'])
def test_items_covered_by_earlier_payout_are_not_paid_again(db, delivered_sale, status):
    kol, _, order = delivered_sale
    _pay_items_before_window(db, kol, order, status)

    result = make_service(db).generate_payouts(date(2024, 1, 6), JAN_END, [kol.influencer_id])
    assert result['payouts'] == []
    assert result['skipped_kol_ids'] == []
    assert db.query(KolPayout).count() == 1


def test_items_covered_by_failed_payout_become_payable_again(db, delivered_sale):
    kol, _, order = delivered_sale
    _pay_items_before_window(db, kol, order, 'failed')

    result = make_service(db).generate_payouts(date(2024, 1, 6), JAN_END, [kol.influencer_id])
    assert len(result['payouts']) == 1
    assert result['payouts'][0].total_amount == pytest.approx(22.5)


def test_payout_items_add_up_to_payout_total(db, seed):
    kol = seed.kol('erin')
    product, inventory = seed.product('Sticker', rate=11, price=0.03)
    link = seed.link(kol, product)
    seed.order([(inventory, 1, link), (inventory, 1, link), (inventory, 1, link)])

    payout = make_service(db).generate_payouts(JAN_START, JAN_END, [kol.influencer_id])['payouts'][0]
    assert payout.total_amount == pytest.approx(0.01)

    amounts = [i.amount for i in db.query(KolPayoutItem).filter_by(payout_id=payout.payout_id).all()]
    assert len(amounts) == 3
    assert sum(amounts) == pytest.approx(payout.total_amount)


def test_already_paid_lookup_emits_no_sqlalchemy_warning(db, delivered_sale):
    kol, _, _ = delivered_sale
    service = make_service(db)
    service.generate_payouts(JAN_START, JAN_END, [kol.influencer_id])

    with warnings.catch_warnings():
        warnings.simplefilter('error', SAWarning)
        paid = service.payout_repo.get_already_paid_kol_ids([kol.influencer_id], datetime(2024, 1, 1))
    assert paid == [kol.influencer_id]
