import logging
from datetime import date, datetime
from io import BytesIO
from typing import Dict, List, Optional, Sequence

from openpyxl import Workbook
from sqlalchemy.orm import Session

from ..database.models import PAYOUT_STATUSES, KolPayout
from ..repositories import AttributionRepository, KolRepository, PayoutRepository
from ..repositories.attribution_repository import PayoutRunFilter, start_of_day
from ..schemas.commission import PayoutListItem, PayoutListRequest, PayoutListResponse, PayoutStatusStats
from ..utils.commission import LineCommission, allocate_cents, attribute_sales
from ..utils.commission_strategies import get_grouping_strategy, summarize
from .commission_service import validate_date_range

logger = logging.getLogger(__name__)


def _display_name(username, first_name, last_name) -> str:
    return username or f'{first_name or ""} {last_name or ""}'.strip()


class PayoutService:
    def __init__(self,
                 db: Session,
                 payout_repo: PayoutRepository,
                 attribution_repo: AttributionRepository,
                 kol_repo: KolRepository):
        self.db = db
        self.payout_repo = payout_repo
        self.attribution_repo = attribution_repo
        self.kol_repo = kol_repo

    def _compute_run(self, start_date: date, end_date: date, kol_ids: Sequence[int]) -> dict:
        """计算一次结算：排除已结算KOL，归因并按KOL汇总（不写库）"""
        already_paid = self.payout_repo.get_already_paid_kol_ids(kol_ids, start_of_day(start_date))
        eligible = [k for k in kol_ids if k not in set(already_paid)]
        if not eligible:
            return {'eligible': [], 'skipped': already_paid, 'groups': [], 'items': {}}

        result = attribute_sales(self.attribution_repo.fetch_payout_lines(
            PayoutRunFilter(kol_ids=eligible, start_date=start_date, end_date=end_date)
        ))
        items: Dict[int, List[LineCommission]] = {}
        for c in result.commissions:
            items.setdefault(c.kol_id, []).append(c)
        groups = [g for g in get_grouping_strategy('kol').group(result.commissions)
                  if round(g['commission']['total'], 2) > 0]
        return {'eligible': eligible, 'skipped': already_paid, 'groups': groups, 'items': items}

    # 1. 生成结算单（单一事务）
    def generate_payouts(self, start_date: date, end_date: date, kol_ids: Sequence[int]) -> dict:
        validate_date_range(start_date, end_date, required=True)
        kol_ids = sorted(set(kol_ids or []))
        if not kol_ids:
            raise ValueError('At least one influencer id is required')

        created: List[KolPayout] = []
        try:
            self.payout_repo.lock_kols(kol_ids)
            run = self._compute_run(start_date, end_date, kol_ids)
            if not run['eligible']:
                self.db.rollback()
                logger.info('Payout generation %s..%s: all %d KOLs already paid', start_date, end_date, len(kol_ids))
                return {'payouts': [], 'skipped_kol_ids': run['skipped'], 'total_amount': 0.0}

            for group in run['groups']:
                total = round(group['commission']['total'], 2)
                notes = f'Commission for {group["orders_count"]} orders from {start_date} to {end_date}'
                payout = self.payout_repo.create(group['kol_id'], total, notes)
                covered = run['items'][group['kol_id']]
                amounts = allocate_cents([c.total_amount for c in covered], total)
                self.payout_repo.add_items(payout.payout_id, [
                    (c.order_item_id, c.order_id, amount) for c, amount in zip(covered, amounts)
                ])
                created.append(payout)
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.exception('Payout generation failed for %s..%s', start_date, end_date)
            raise

        for payout in created:
            self.db.refresh(payout)
        total_amount = round(sum(p.total_amount for p in created), 2)
        logger.info('Generated %d payouts (%.2f) for %s..%s, skipped %s',
                    len(created), total_amount, start_date, end_date, run['skipped'])
        return {'payouts': created, 'skipped_kol_ids': run['skipped'], 'total_amount': total_amount}

    # 2. 可结算KOL预览（不写库）
    def get_eligible(self, start_date: date, end_date: date) -> dict:
        validate_date_range(start_date, end_date, required=True)
        run = self._compute_run(start_date, end_date, self.kol_repo.get_active_ids())
        kols = [{
            'kol_id': g['kol_id'],
            'kol_name': g['kol_name'],
            'tier_name': g['tier_name'],
            'orders_count': g['orders_count'],
            'revenue': g['revenue'],
            'commission': g['commission'],
            'total_amount': round(g['commission']['total'], 2),
        } for g in run['groups']]
        return {
            'period': {'start': start_date.isoformat(), 'end': end_date.isoformat()},
            'kols': kols,
            'skipped_kol_ids': run['skipped'],
            'total_eligible_amount': round(sum(k['total_amount'] for k in kols), 2),
        }

    # 3. 管理员更新结算状态
    def update_status(self, payout_id: int, payment_status: str, notes: Optional[str] = None) -> KolPayout:
        if payment_status not in PAYOUT_STATUSES:
            raise ValueError(f'Invalid payment status: {payment_status}')
        payout = self.payout_repo.get(payout_id)
        if not payout:
            raise LookupError('Payout not found')
        payout.payment_status = payment_status
        if notes is not None:
            payout.notes = notes
        payout.modified_at = datetime.now()
        self.db.commit()
        self.db.refresh(payout)
        logger.info('Payout %s status set to %s', payout_id, payment_status)
        return payout

    # 4. 结算单详情（覆盖订单明细）
    def get_detail(self, payout_id: int) -> dict:
        payout = self.payout_repo.get(payout_id)
        if not payout:
            raise LookupError('Payout not found')

        if self.payout_repo.count_items(payout_id):
            coverage = 'explicit'
            lines = self.attribution_repo.fetch_covered_lines(payout_id)
        else:
            coverage = 'timestamp'
            lines = self.attribution_repo.fetch_lines_before(payout.kol_id, payout.created_at)
        result = attribute_sales(lines)

        orders = {}
        for c in result.commissions:
            order = orders.setdefault(c.order_id, {
                'order_id': c.order_id,
                'date': c.order_date,
                'revenue': 0.0,
                'commission': 0.0,
                'items': [],
            })
            order['revenue'] += c.line_total
            order['commission'] += c.total_amount
            order['items'].append(c.to_dict())

        kol = {'kol_id': payout.kol_id}
        found = self.kol_repo.get_with_tier(payout.kol_id)
        if found:
            _, tier, user = found
            kol.update(
                kol_name=_display_name(user.username, user.first_name, user.last_name) if user else None,
                email=user.email if user else None,
                tier_name=tier.tier_name if tier else None,
                tier_commission_rate=float(tier.commission_rate or 0) if tier else 0.0,
            )
        return {
            'payout': payout,
            'kol': kol,
            'coverage': coverage,
            'summary': summarize(result.commissions),
            'orders': list(orders.values()),
        }

    # 5. 结算单列表（分页 + 状态统计）
    def list_payouts(self, req: PayoutListRequest) -> PayoutListResponse:
        validate_date_range(req.start_date, req.end_date)
        records, total = self.payout_repo.list_payouts(req)
        stats = self.payout_repo.get_status_stats(req.start_date, req.end_date)
        data = [PayoutListItem(
            payout_id=p.payout_id,
            kol_id=p.kol_id,
            total_amount=p.total_amount,
            payment_status=p.payment_status,
            payout_date=p.payout_date,
            notes=p.notes,
            created_at=p.created_at,
            modified_at=p.modified_at,
            kol_name=_display_name(username, first_name, last_name),
            kol_email=email,
        ) for p, username, email, first_name, last_name in records]
        return PayoutListResponse(
            data=data,
            total=total,
            page=req.page,
            page_size=req.limit,
            total_pages=(total + req.limit - 1) // req.limit,
            stats=PayoutStatusStats(**stats),
        )

    # 6. 导出Excel
    def export_report(self, start_date: date, end_date: date, status: str = 'all') -> bytes:
        validate_date_range(start_date, end_date, required=True)
        rows = self.payout_repo.list_for_export(start_date, end_date, status)

        wb = Workbook()
        ws_summary = wb.active
        ws_summary.title = 'Summary'
        ws_summary.append(['KOL Payout Report'])
        ws_summary.append([f'Period: {start_date} to {end_date}'])
        ws_summary.append([])
        ws_summary.append(['Status', 'Count', 'Total Amount'])
        for s in PAYOUT_STATUSES:
            matched = [p for p, *_ in rows if p.payment_status == s]
            ws_summary.append([s.capitalize(), len(matched), round(sum(p.total_amount for p in matched), 2)])
        ws_summary.append(['Total', len(rows), round(sum(p.total_amount for p, *_ in rows), 2)])

        ws = wb.create_sheet('Payout Details')
        ws.append(['Payout ID', 'KOL Name', 'Username', 'Email', 'Amount', 'Status', 'Payout Date'])
        for p, username, email, first_name, last_name in rows:
            ws.append([
                p.payout_id,
                f'{first_name or ""} {last_name or ""}'.strip(),
                username,
                email,
                p.total_amount,
                p.payment_status,
                p.payout_date,
            ])

        buffer = BytesIO()
        wb.save(buffer)
        return buffer.getvalue()
