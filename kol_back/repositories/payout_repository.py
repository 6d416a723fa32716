from datetime import date, datetime
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..database.models import BLOCKING_PAYOUT_STATUSES, PAYOUT_STATUSES, Influencer, KolPayout, KolPayoutItem, User
from ..schemas.commission import PayoutListRequest

SORTABLE_FIELDS = {
    'payout_date': KolPayout.payout_date,
    'created_at': KolPayout.created_at,
    'total_amount': KolPayout.total_amount,
    'payment_status': KolPayout.payment_status,
    'payout_id': KolPayout.payout_id,
}


class PayoutRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, payout_id: int) -> Optional[KolPayout]:
        return self.db.query(KolPayout).filter(KolPayout.payout_id == payout_id).first()

    def lock_kols(self, kol_ids: Sequence[int]) -> List[int]:
        # 锁定候选KOL行，串行化同一批KOL的并发结算（SQLite忽略FOR UPDATE）
        rows = self.db.query(Influencer.influencer_id) \
                      .filter(Influencer.influencer_id.in_(list(kol_ids))) \
                      .with_for_update() \
                      .all()
        return [r.influencer_id for r in rows]

    def get_already_paid_kol_ids(self, kol_ids: Sequence[int], since: datetime) -> List[int]:
        rows = self.db.query(KolPayout.kol_id).distinct() \
                      .filter(KolPayout.kol_id.in_(list(kol_ids))) \
                      .filter(KolPayout.payment_status.in_(BLOCKING_PAYOUT_STATUSES)) \
                      .filter(KolPayout.created_at >= since) \
                      .all()
        return sorted(r[0] for r in rows)

    def create(self, kol_id: int, total_amount: float, notes: str) -> KolPayout:
        payout = KolPayout(
            kol_id=kol_id,
            total_amount=total_amount,
            payment_status='pending',
            payout_date=date.today(),
            notes=notes,
        )
        self.db.add(payout)
        self.db.flush()  # 获取刚插入的payout_id
        return payout

    def add_items(self, payout_id: int, items: List[Tuple[int, int, float]]):
        # items: (order_item_id, order_id, amount)，金额已按分分摊
        self.db.add_all([
            KolPayoutItem(payout_id=payout_id, order_item_id=oi, order_id=o, amount=amount)
            for oi, o, amount in items
        ])

    def count_items(self, payout_id: int) -> int:
        return self.db.query(func.count(KolPayoutItem.id)).filter(KolPayoutItem.payout_id == payout_id).scalar()

    def _filtered(self, status: Optional[str], start_date: Optional[date], end_date: Optional[date]):
        query = self.db.query(KolPayout)
        if status and status != 'all':
            query = query.filter(KolPayout.payment_status == status)
        if start_date and end_date:
            query = query.filter(KolPayout.payout_date.between(start_date, end_date))
        return query

    # 分页列表（状态、日期、KOL姓名/邮箱关键字）
    def list_payouts(self, req: PayoutListRequest) -> Tuple[list, int]:
        query = self._filtered(req.status, req.start_date, req.end_date) \
            .join(Influencer, Influencer.influencer_id == KolPayout.kol_id) \
            .join(User, User.user_id == Influencer.user_id) \
            .add_columns(User.username, User.email, User.first_name, User.last_name)
        if req.search:
            keyword = f'%{req.search}%'
            query = query.filter(or_(
                User.username.like(keyword),
                User.email.like(keyword),
                User.first_name.like(keyword),
                User.last_name.like(keyword),
            ))
        total = query.count()
        sort_col = SORTABLE_FIELDS.get(req.sort_by, KolPayout.payout_date)
        sort_col = sort_col.asc() if req.sort_order.upper() == 'ASC' else sort_col.desc()
        records = query.order_by(sort_col, KolPayout.payout_id.desc()) \
                       .offset((req.page - 1) * req.limit) \
                       .limit(req.limit) \
                       .all()
        return records, total

    # 各状态数量与金额
    def get_status_stats(self, start_date: Optional[date], end_date: Optional[date]) -> dict:
        query = self.db.query(
            KolPayout.payment_status,
            func.count(KolPayout.payout_id),
            func.sum(KolPayout.total_amount),
        )
        if start_date and end_date:
            query = query.filter(KolPayout.payout_date.between(start_date, end_date))
        rows = query.group_by(KolPayout.payment_status).all()

        stats = {'total_payouts': 0, 'total_amount': 0.0}
        for s in PAYOUT_STATUSES:
            stats[f'{s}_count'] = 0
            stats[f'{s}_amount'] = 0.0
        for status, count, amount in rows:
            stats['total_payouts'] += count
            stats['total_amount'] += float(amount or 0)
            if status in PAYOUT_STATUSES:
                stats[f'{status}_count'] = count
                stats[f'{status}_amount'] = float(amount or 0)
        return stats

    def list_for_export(self, start_date: date, end_date: date, status: str = 'all') -> list:
        return self._filtered(status, start_date, end_date) \
            .join(Influencer, Influencer.influencer_id == KolPayout.kol_id) \
            .join(User, User.user_id == Influencer.user_id) \
            .add_columns(User.username, User.email, User.first_name, User.last_name) \
            .order_by(KolPayout.payout_date.desc(), KolPayout.payout_id.desc()) \
            .all()
