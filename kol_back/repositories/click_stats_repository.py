from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..database.models import KolAffiliateStats


class ClickStatsRepository:
    """点击/成交计数存储，按 (KOL, 商品, 日) 一条记录"""

    def __init__(self, db: Session):
        self.db = db

    def _get_or_create(self, kol_id: int, product_id: int, day: date) -> KolAffiliateStats:
        stats = self.db.query(KolAffiliateStats).filter_by(kol_id=kol_id, product_id=product_id, date=day).first()
        if stats:
            return stats
        # 并发插入同一天记录时由唯一约束报错，调用方按尽力而为处理
        stats = KolAffiliateStats(kol_id=kol_id, product_id=product_id, date=day, clicks=0,
                                  successful_purchases=0, conversion_rate=0)
        self.db.add(stats)
        self.db.flush()
        return stats

    def ensure(self, kol_id: int, product_id: int, day: Optional[date] = None) -> KolAffiliateStats:
        return self._get_or_create(kol_id, product_id, day or date.today())

    def increment_clicks(self, kol_id: int, product_id: int, attrs: Optional[dict] = None,
                         now: Optional[datetime] = None) -> KolAffiliateStats:
        now = now or datetime.now()
        stats = self._get_or_create(kol_id, product_id, now.date())
        stats.clicks = KolAffiliateStats.clicks + 1
        stats.hour_of_day = now.hour
        # 与周日=0的约定保持一致
        stats.day_of_week = (now.weekday() + 1) % 7
        for key, value in (attrs or {}).items():
            if value is not None and hasattr(KolAffiliateStats, key):
                setattr(stats, key, value)
        self.db.flush()
        self.db.refresh(stats)
        return stats

    def increment_purchases(self, kol_id: int, product_id: int, attrs: Optional[dict] = None,
                            now: Optional[datetime] = None) -> KolAffiliateStats:
        now = now or datetime.now()
        stats = self._get_or_create(kol_id, product_id, now.date())
        stats.successful_purchases = KolAffiliateStats.successful_purchases + 1
        for key, value in (attrs or {}).items():
            if value is not None and hasattr(KolAffiliateStats, key):
                setattr(stats, key, value)
        self.db.flush()
        self.db.refresh(stats)
        if stats.clicks > 0:
            stats.conversion_rate = round(stats.successful_purchases / stats.clicks * 100, 2)
            self.db.flush()
        return stats

    def get_totals(self, kol_id: int, start_date: Optional[date] = None, end_date: Optional[date] = None) -> dict:
        query = self.db.query(
            func.coalesce(func.sum(KolAffiliateStats.clicks), 0),
            func.coalesce(func.sum(KolAffiliateStats.successful_purchases), 0),
        ).filter(KolAffiliateStats.kol_id == kol_id)
        if start_date and end_date:
            query = query.filter(KolAffiliateStats.date.between(start_date, end_date))
        clicks, purchases = query.one()
        return {'clicks': int(clicks), 'successful_purchases': int(purchases)}

    # 按KOL或商品查询每日计数，日期倒序
    def list_stats(self, kol_id: Optional[int] = None, product_id: Optional[int] = None,
                   start_date: Optional[date] = None, end_date: Optional[date] = None) -> List[KolAffiliateStats]:
        query = self.db.query(KolAffiliateStats)
        if kol_id is not None:
            query = query.filter(KolAffiliateStats.kol_id == kol_id)
        if product_id is not None:
            query = query.filter(KolAffiliateStats.product_id == product_id)
        if start_date and end_date:
            query = query.filter(KolAffiliateStats.date.between(start_date, end_date))
        return query.order_by(KolAffiliateStats.date.desc(), KolAffiliateStats.id.desc()).all()
