import logging
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from ..database.models import Influencer, KolAffiliateStats
from ..repositories import AttributionRepository, ClickStatsRepository, KolRepository, ProductRepository
from ..repositories.attribution_repository import KolSalesFilter
from ..schemas.kol import (
    ClickStatRow, KolAffiliateLinkInfo, KolListItem, KolListRequest, KolListResponse, KolTierInfo, KolUserInfo
)
from ..utils.commission import attribute_sales
from ..utils.commission_strategies import get_grouping_strategy
from .commission_service import validate_date_range

logger = logging.getLogger(__name__)

# 管理员可设置的状态；暂停/封禁必须填写原因
MANAGED_STATUSES = ('active', 'suspended', 'banned')
REASON_REQUIRED_STATUSES = ('suspended', 'banned')
RECENT_TRANSACTION_LIMIT = 10


def _click_totals(stats: List[KolAffiliateStats]) -> dict:
    clicks = sum(s.clicks for s in stats)
    purchases = sum(s.successful_purchases for s in stats)
    return {
        'total_clicks': clicks,
        'total_purchases': purchases,
        'overall_conversion_rate': round(purchases / clicks * 100, 2) if clicks else 0.0,
    }


class KolService:
    def __init__(self,
                 db: Session,
                 kol_repo: KolRepository,
                 attribution_repo: AttributionRepository,
                 click_stats_repo: ClickStatsRepository,
                 product_repo: ProductRepository):
        self.db = db
        self.kol_repo = kol_repo
        self.attribution_repo = attribution_repo
        self.click_stats_repo = click_stats_repo
        self.product_repo = product_repo

    def _sales_by_kol(self, kol_ids: List[int]) -> dict:
        # 已送达/已完成订单的成交额与佣金（商品比例 + 等级比例）
        if not kol_ids:
            return {}
        result = attribute_sales(self.attribution_repo.fetch_kol_sales_lines(KolSalesFilter(kol_ids)))
        return {g['kol_id']: g for g in get_grouping_strategy('kol').group(result.commissions)}

    # 1. KOL管理列表
    def list_kols(self, req: KolListRequest) -> KolListResponse:
        records, total = self.kol_repo.list_kols(req)
        kol_ids = [kol.influencer_id for kol, _, _ in records]
        sales = self._sales_by_kol(kol_ids)
        links = self.kol_repo.count_links(kol_ids)

        data = []
        for kol, tier, user in records:
            group = sales.get(kol.influencer_id)
            data.append(KolListItem(
                influencer_id=kol.influencer_id,
                status=kol.status,
                status_reason=kol.status_reason,
                modified_at=kol.modified_at,
                user=KolUserInfo.model_validate(user) if user else None,
                tier=KolTierInfo.model_validate(tier) if tier else None,
                total_sales=group['revenue'] if group else 0.0,
                total_commission=group['commission']['total'] if group else 0.0,
                total_affiliate_links=links.get(kol.influencer_id, 0),
            ))
        return KolListResponse(
            data=data,
            total=total,
            page=req.page,
            page_size=req.limit,
            total_pages=(total + req.limit - 1) // req.limit,
        )

    # 2. KOL详情（业绩 + 推广链接）
    def get_detail(self, kol_id: int) -> dict:
        found = self.kol_repo.get_with_tier(kol_id)
        if not found:
            raise LookupError('KOL not found')
        kol, tier, user = found

        result = attribute_sales(self.attribution_repo.fetch_kol_sales_lines(KolSalesFilter([kol_id])))
        recent = {}
        for c in result.commissions:
            if c.order_id not in recent:
                if len(recent) >= RECENT_TRANSACTION_LIMIT:
                    continue
                recent[c.order_id] = {'order_id': c.order_id, 'date': c.order_date, 'amount': 0.0, 'commission': 0.0}
            recent[c.order_id]['amount'] += c.line_total
            recent[c.order_id]['commission'] += c.total_amount

        links = self.kol_repo.list_links(kol_id)
        return {
            'influencer_id': kol.influencer_id,
            'status': kol.status,
            'status_reason': kol.status_reason,
            'modified_at': kol.modified_at,
            'user': KolUserInfo.model_validate(user) if user else None,
            'tier': KolTierInfo.model_validate(tier) if tier else None,
            'performance': {
                'total_sales': sum(c.line_total for c in result.commissions),
                'total_commission': sum(c.total_amount for c in result.commissions),
                'total_affiliate_links': len(links),
                'recent_transactions': list(recent.values()),
            },
            'affiliate_links': [KolAffiliateLinkInfo.model_validate(link) for link in links],
        }

    # 3. 管理员变更KOL状态
    def update_status(self, kol_id: int, status: str, reason: Optional[str] = None) -> Influencer:
        if status not in MANAGED_STATUSES:
            raise ValueError('Invalid status')
        kol = self.kol_repo.get(kol_id)
        if not kol:
            raise LookupError('KOL not found')
        if kol.status == status:
            raise ValueError(f'KOL is already {status}')
        reason = (reason or '').strip() or None
        if status in REASON_REQUIRED_STATUSES and not reason:
            raise ValueError('Reason is required for suspend or ban actions')

        kol.status = status
        kol.status_reason = reason
        kol.modified_at = datetime.now()
        self.db.commit()
        self.db.refresh(kol)
        logger.info('KOL %s status set to %s (reason: %s)', kol_id, status, reason)
        return kol

    # 4. 单个KOL的点击/成交计数
    def get_kol_click_stats(self, kol_id: int, start_date: Optional[date] = None,
                            end_date: Optional[date] = None, product_id: Optional[int] = None) -> dict:
        validate_date_range(start_date, end_date)
        if not self.kol_repo.exists(kol_id):
            raise LookupError('Influencer not found')
        stats = self.click_stats_repo.list_stats(kol_id=kol_id, product_id=product_id,
                                                 start_date=start_date, end_date=end_date)
        return {'kol_id': kol_id, 'aggregated': _click_totals(stats),
                'daily_stats': [ClickStatRow.model_validate(s) for s in stats]}

    # 5. 单个商品的点击/成交计数（按KOL汇总）
    def get_product_click_stats(self, product_id: int, start_date: Optional[date] = None,
                                end_date: Optional[date] = None) -> dict:
        validate_date_range(start_date, end_date)
        if not self.product_repo.get(product_id):
            raise LookupError('Product not found')
        stats = self.click_stats_repo.list_stats(product_id=product_id, start_date=start_date, end_date=end_date)

        per_kol = {}
        for s in stats:
            row = per_kol.setdefault(s.kol_id, {'kol_id': s.kol_id, 'clicks': 0, 'purchases': 0})
            row['clicks'] += s.clicks
            row['purchases'] += s.successful_purchases
        return {
            'product_id': product_id,
            'aggregated': _click_totals(stats),
            'kol_stats': list(per_kol.values()),
            'daily_stats': [ClickStatRow.model_validate(s) for s in stats],
        }
