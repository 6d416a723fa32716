from dataclasses import dataclass
from datetime import date, datetime, time
from typing import List, Optional, Sequence

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from ..database.models import (
    BLOCKING_PAYOUT_STATUSES,
    EXCLUDED_ORDER_STATUSES,
    PAYABLE_ORDER_STATUSES,
    Influencer,
    InfluencerAffiliateLink,
    InfluencerTier,
    KolPayout,
    KolPayoutItem,
    Order,
    OrderItem,
    Product,
    ProductInventory,
    User,
)
from ..utils.commission import SaleLine


def start_of_day(d: date) -> datetime:
    return datetime.combine(d, time.min)


def end_of_day(d: date) -> datetime:
    return datetime.combine(d, time.max)


# 查询条件
@dataclass
class ReportFilter:
    kol_id: int
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    product_id: Optional[int] = None


@dataclass
class PayoutRunFilter:
    kol_ids: Sequence[int]
    start_date: date
    end_date: date
    exclude_covered: bool = True


@dataclass
class PayoutCoverageFilter:
    payout_id: int


@dataclass
class TimestampCoverageFilter:
    kol_id: int
    created_before: datetime


@dataclass
class DashboardFilter:
    kol_id: int
    start_date: Optional[date] = None
    end_date: Optional[date] = None


@dataclass
class KolSalesFilter:
    kol_ids: Sequence[int]


def _sale_line_select() -> Select:
    # 订单明细 -> 推广链接 -> KOL(+用户、等级) / 商品，外连接保留缺失的KOL或商品供归因跳过
    return (
        select(
            OrderItem.order_id,
            OrderItem.order_item_id,
            OrderItem.quantity,
            OrderItem.link_id,
            OrderItem.creation_at.label('item_created_at'),
            Order.creation_at.label('order_created_at'),
            ProductInventory.price.label('unit_price'),
            Product.product_id,
            Product.name.label('product_name'),
            Product.commission_rate.label('product_rate'),
            Influencer.influencer_id.label('kol_id'),
            User.username,
            User.first_name,
            User.last_name,
            InfluencerTier.tier_name,
            InfluencerTier.commission_rate.label('tier_rate'),
        )
        .select_from(OrderItem)
        .join(Order, Order.order_id == OrderItem.order_id)
        .outerjoin(ProductInventory, ProductInventory.inventory_id == OrderItem.inventory_id)
        .outerjoin(InfluencerAffiliateLink, InfluencerAffiliateLink.link_id == OrderItem.link_id)
        .outerjoin(Influencer, Influencer.influencer_id == InfluencerAffiliateLink.influencer_id)
        .outerjoin(User, User.user_id == Influencer.user_id)
        .outerjoin(InfluencerTier, InfluencerTier.tier_id == Influencer.tier_id)
        .outerjoin(Product, Product.product_id == InfluencerAffiliateLink.product_id)
        .where(OrderItem.link_id.isnot(None))
    )


def _covered_item_ids() -> Select:
    return (
        select(KolPayoutItem.order_item_id)
        .join(KolPayout, KolPayout.payout_id == KolPayoutItem.payout_id)
        .where(KolPayout.payment_status.in_(BLOCKING_PAYOUT_STATUSES))
    )


def build_report_query(f: ReportFilter) -> Select:
    query = _sale_line_select().where(Influencer.influencer_id == f.kol_id)
    if f.product_id:
        query = query.where(Product.product_id == f.product_id)
    if f.start_date:
        query = query.where(OrderItem.creation_at >= start_of_day(f.start_date))
    if f.end_date:
        query = query.where(OrderItem.creation_at <= end_of_day(f.end_date))
    return query.order_by(OrderItem.creation_at.desc(), OrderItem.order_item_id.desc())


def build_payout_run_query(f: PayoutRunFilter) -> Select:
    query = (
        _sale_line_select()
        .where(Influencer.influencer_id.in_(list(f.kol_ids)))
        .where(Order.status.in_(PAYABLE_ORDER_STATUSES))
        .where(Order.creation_at >= start_of_day(f.start_date))
        .where(Order.creation_at <= end_of_day(f.end_date))
    )
    if f.exclude_covered:
        query = query.where(OrderItem.order_item_id.notin_(_covered_item_ids()))
    return query.order_by(OrderItem.order_item_id)


def build_payout_coverage_query(f: PayoutCoverageFilter) -> Select:
    return (
        _sale_line_select()
        .join(KolPayoutItem, KolPayoutItem.order_item_id == OrderItem.order_item_id)
        .where(KolPayoutItem.payout_id == f.payout_id)
        .order_by(OrderItem.order_item_id)
    )


def build_timestamp_coverage_query(f: TimestampCoverageFilter) -> Select:
    return (
        _sale_line_select()
        .where(Influencer.influencer_id == f.kol_id)
        .where(Order.status.in_(PAYABLE_ORDER_STATUSES))
        .where(Order.creation_at <= f.created_before)
        .order_by(OrderItem.order_item_id)
    )


def build_dashboard_query(f: DashboardFilter) -> Select:
    query = (
        _sale_line_select()
        .where(Influencer.influencer_id == f.kol_id)
        .where(Order.status.notin_(EXCLUDED_ORDER_STATUSES))
    )
    if f.start_date and f.end_date:
        query = query.where(Order.creation_at >= start_of_day(f.start_date))
        query = query.where(Order.creation_at <= end_of_day(f.end_date))
    return query


def build_kol_sales_query(f: KolSalesFilter) -> Select:
    # KOL管理：已送达/已完成订单的推广成交，按下单时间倒序
    return (
        _sale_line_select()
        .where(Influencer.influencer_id.in_(list(f.kol_ids)))
        .where(Order.status.in_(PAYABLE_ORDER_STATUSES))
        .order_by(Order.creation_at.desc(), OrderItem.order_item_id.desc())
    )


def _kol_name(row) -> Optional[str]:
    if row.username:
        return row.username
    name = f'{row.first_name or ""} {row.last_name or ""}'.strip()
    return name or None


def row_to_sale_line(row) -> SaleLine:
    return SaleLine(
        order_id=row.order_id,
        order_item_id=row.order_item_id,
        quantity=row.quantity,
        unit_price=row.unit_price,
        link_id=row.link_id,
        order_date=row.item_created_at or row.order_created_at,
        product_id=row.product_id,
        product_name=row.product_name,
        product_rate=row.product_rate,
        kol_id=row.kol_id,
        kol_name=_kol_name(row),
        tier_name=row.tier_name,
        tier_rate=row.tier_rate,
    )


class AttributionRepository:
    def __init__(self, db: Session):
        self.db = db

    def _fetch(self, query: Select) -> List[SaleLine]:
        return [row_to_sale_line(r) for r in self.db.execute(query).all()]

    # 1. KOL转化报表
    def fetch_report_lines(self, f: ReportFilter) -> List[SaleLine]:
        return self._fetch(build_report_query(f))

    # 2. 结算生成（区间内已送达/已完成订单）
    def fetch_payout_lines(self, f: PayoutRunFilter) -> List[SaleLine]:
        return self._fetch(build_payout_run_query(f))

    # 3. 结算单覆盖的明细
    def fetch_covered_lines(self, payout_id: int) -> List[SaleLine]:
        return self._fetch(build_payout_coverage_query(PayoutCoverageFilter(payout_id)))

    # 无覆盖记录的结算单：按创建时间回溯
    def fetch_lines_before(self, kol_id: int, created_before: datetime) -> List[SaleLine]:
        return self._fetch(build_timestamp_coverage_query(TimestampCoverageFilter(kol_id, created_before)))

    # 4. KOL统计面板
    def fetch_dashboard_lines(self, f: DashboardFilter) -> List[SaleLine]:
        return self._fetch(build_dashboard_query(f))

    # 5. KOL管理（销售额与近期成交）
    def fetch_kol_sales_lines(self, f: KolSalesFilter) -> List[SaleLine]:
        return self._fetch(build_kol_sales_query(f))
