import logging
from datetime import date
from math import ceil
from typing import Optional

from sqlalchemy.orm import Session

from ..repositories import AttributionRepository, ClickStatsRepository, KolRepository, ProductRepository
from ..repositories.attribution_repository import DashboardFilter, ReportFilter
from ..schemas.commission import CommissionProduct, PageRequest, PageResponse
from ..utils.commission import attribute_sales
from ..utils.commission_strategies import aggregate, get_grouping_strategy, summarize

logger = logging.getLogger(__name__)

PLACEHOLDER_IMAGE = '/images/placeholder-product.jpg'


def validate_date_range(start_date: Optional[date], end_date: Optional[date], required: bool = False):
    if required and (not start_date or not end_date):
        raise ValueError('Start date and end date are required')
    if start_date and end_date and start_date > end_date:
        raise ValueError('Start date must be on or before end date')


class CommissionService:
    def __init__(self,
                 db: Session,
                 attribution_repo: AttributionRepository,
                 click_stats_repo: ClickStatsRepository,
                 kol_repo: KolRepository,
                 product_repo: ProductRepository):
        self.db = db
        self.attribution_repo = attribution_repo
        self.click_stats_repo = click_stats_repo
        self.kol_repo = kol_repo
        self.product_repo = product_repo

    # 1. KOL转化报表（汇总 + 可选分组）
    def get_report(self,
                   kol_id: int,
                   start_date: Optional[date] = None,
                   end_date: Optional[date] = None,
                   product_id: Optional[int] = None,
                   group_by: Optional[str] = None) -> dict:
        validate_date_range(start_date, end_date)
        end_date = end_date or date.today()

        lines = self.attribution_repo.fetch_report_lines(ReportFilter(kol_id, start_date, end_date, product_id))
        result = attribute_sales(lines)
        aggregated = aggregate(result.commissions, group_by)

        return {
            'summary': aggregated['summary'],
            'period': {
                'start': start_date.isoformat() if start_date else None,
                'end': end_date.isoformat(),
            },
            'group_by': group_by,
            'details': aggregated['details'],
            'skipped': result.skip_counts(),
        }

    # 2. KOL统计面板
    def get_dashboard_stats(self, kol_id: int, start_date: Optional[date] = None,
                            end_date: Optional[date] = None) -> dict:
        validate_date_range(start_date, end_date)
        found = self.kol_repo.get_with_tier(kol_id)
        if not found:
            raise LookupError('Influencer not found')
        _, tier, _ = found

        counters = self.click_stats_repo.get_totals(kol_id, start_date, end_date)
        result = attribute_sales(self.attribution_repo.fetch_dashboard_lines(DashboardFilter(kol_id, start_date, end_date)))
        summary = summarize(result.commissions)

        products = get_grouping_strategy('product').group(result.commissions)
        top_products = sorted(products, key=lambda p: p['total_quantity'], reverse=True)[:5]

        clicks = counters['clicks']
        purchases = counters['successful_purchases']
        return {
            'clicks': clicks,
            'successful_purchases': purchases,
            'conversion_rate': round(purchases / clicks * 100, 2) if clicks else 0.0,
            'total_orders': summary['total_orders'],
            'total_quantity': sum(c.quantity for c in result.commissions),
            'total_sales': summary['total_revenue'],
            'estimated_commission': summary['commission']['total'],
            'tier_name': tier.tier_name if tier else 'Standard',
            'tier_commission_rate': float(tier.commission_rate or 0) if tier else 0.0,
            'top_products': [{
                'product_id': p['product_id'],
                'name': p['product_name'],
                'commission_rate': p['product_commission_rate'],
                'total_sold': p['total_quantity'],
                'total_revenue': p['revenue'],
                'commission': p['commission']['total'],
            } for p in top_products],
        }

    # 3. 可推广商品列表（分页）
    def get_commission_products(self, page_req: PageRequest) -> PageResponse[CommissionProduct]:
        records, total = self.product_repo.list_commission_products(page_req.page, page_req.page_size, page_req.keyword)
        data = []
        for product, min_price, sold_count in records:
            description = product.description or ''
            if len(description) > 100:
                description = description[:100] + '...'
            data.append(CommissionProduct(
                product_id=product.product_id,
                name=product.name,
                description=description,
                image=product.small_image or PLACEHOLDER_IMAGE,
                price=float(min_price or 0),
                commission_rate=product.commission_rate or 0,
                sold_count=sold_count or 0,
            ))
        return PageResponse(
            data=data,
            total=total,
            page=page_req.page,
            page_size=page_req.page_size,
            total_pages=ceil(total / page_req.page_size)
        )
