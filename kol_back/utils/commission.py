import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)

# 比例缺失时的默认值（唯一定义处）
DEFAULT_PRODUCT_RATE = 0.0
DEFAULT_TIER_RATE = 0.0


@dataclass(frozen=True)
class CommissionRates:
    product_rate: float
    tier_rate: float

    @property
    def total_rate(self) -> float:
        return self.product_rate + self.tier_rate


def resolve_rates(product_rate=None, tier_rate=None) -> CommissionRates:
    """解析一条成交适用的两个佣金比例

    商品比例与等级比例分别返回，调用方需各自乘以成交金额，不可先合并。
    缺失（None）按默认值 0 处理。
    """
    return CommissionRates(
        product_rate=float(product_rate) if product_rate is not None else DEFAULT_PRODUCT_RATE,
        tier_rate=float(tier_rate) if tier_rate is not None else DEFAULT_TIER_RATE,
    )


class SkipReason(str, Enum):
    NO_AFFILIATE_LINK = 'no_affiliate_link'
    MISSING_KOL = 'missing_kol'
    MISSING_PRODUCT = 'missing_product'
    DUPLICATE = 'duplicate'


@dataclass
class SaleLine:
    """订单明细原始行（已关联商品、KOL及等级）"""
    order_id: int
    order_item_id: int
    quantity: Optional[int]
    unit_price: Optional[float]
    link_id: Optional[int]
    order_date: Optional[datetime] = None
    product_id: Optional[int] = None
    product_name: Optional[str] = None
    product_rate: Optional[float] = None
    kol_id: Optional[int] = None
    kol_name: Optional[str] = None
    tier_name: Optional[str] = None
    tier_rate: Optional[float] = None


@dataclass
class LineCommission:
    order_id: int
    order_item_id: int
    order_date: Optional[datetime]
    kol_id: int
    kol_name: Optional[str]
    tier_name: Optional[str]
    product_id: int
    product_name: Optional[str]
    quantity: int
    line_total: float
    product_rate: float
    tier_rate: float
    product_amount: float
    tier_amount: float
    total_amount: float

    def to_dict(self) -> dict:
        return {
            'order_id': self.order_id,
            'order_item_id': self.order_item_id,
            'date': self.order_date,
            'kol': {'id': self.kol_id, 'name': self.kol_name, 'tier_name': self.tier_name},
            'product': {'id': self.product_id, 'name': self.product_name},
            'quantity': self.quantity,
            'total': self.line_total,
            'commission': {
                'product_rate': self.product_rate,
                'tier_rate': self.tier_rate,
                'total_rate': self.product_rate + self.tier_rate,
                'product_amount': self.product_amount,
                'tier_amount': self.tier_amount,
                'total_amount': self.total_amount,
            },
        }


@dataclass
class SkippedLine:
    order_id: int
    order_item_id: int
    reason: SkipReason


@dataclass
class AttributionResult:
    commissions: List[LineCommission] = field(default_factory=list)
    skipped: List[SkippedLine] = field(default_factory=list)

    def skip_counts(self) -> dict:
        counts = {}
        for s in self.skipped:
            counts[s.reason.value] = counts.get(s.reason.value, 0) + 1
        return counts


def calculate_line_commission(line: SaleLine) -> LineCommission:
    """计算单条明细佣金：成交额 × 商品比例 + 成交额 × 等级比例"""
    rates = resolve_rates(line.product_rate, line.tier_rate)
    quantity = line.quantity or 0
    line_total = quantity * float(line.unit_price or 0)
    product_amount = line_total * rates.product_rate / 100
    tier_amount = line_total * rates.tier_rate / 100
    return LineCommission(
        order_id=line.order_id,
        order_item_id=line.order_item_id,
        order_date=line.order_date,
        kol_id=line.kol_id,
        kol_name=line.kol_name,
        tier_name=line.tier_name,
        product_id=line.product_id,
        product_name=line.product_name,
        quantity=quantity,
        line_total=line_total,
        product_rate=rates.product_rate,
        tier_rate=rates.tier_rate,
        product_amount=product_amount,
        tier_amount=tier_amount,
        total_amount=product_amount + tier_amount,
    )


def allocate_cents(amounts: List[float], total: float) -> List[float]:
    """将已四舍五入的总额按最大余数法分摊到各条明细，保证明细之和等于总额"""
    total_cents = int(round(total * 100))
    raw = [round(a * 100, 6) for a in amounts]
    floors = [math.floor(r) for r in raw]
    remaining = total_cents - sum(floors)
    # 余数大的优先补一分，余数相同按原顺序
    order = sorted(range(len(raw)), key=lambda i: raw[i] - floors[i], reverse=True)
    for i in order[:max(remaining, 0)]:
        floors[i] += 1
    return [round(c / 100, 2) for c in floors]


def attribute_sales(lines: Iterable[SaleLine]) -> AttributionResult:
    """将订单明细归因到KOL并计算佣金

    Args:
        lines: 订单明细原始行，可能因关联查询出现重复行

    Returns:
        AttributionResult: 每个 (order_id, order_item_id) 至多一条佣金记录，
        以及被跳过的行及原因
    """
    result = AttributionResult()
    seen = set()

    for line in lines:
        key = (line.order_id, line.order_item_id)
        if line.link_id is None:
            result.skipped.append(SkippedLine(line.order_id, line.order_item_id, SkipReason.NO_AFFILIATE_LINK))
            continue
        if key in seen:
            result.skipped.append(SkippedLine(line.order_id, line.order_item_id, SkipReason.DUPLICATE))
            continue
        if line.kol_id is None:
            logger.warning('Skipping order item %s of order %s: KOL not resolved', line.order_item_id, line.order_id)
            result.skipped.append(SkippedLine(line.order_id, line.order_item_id, SkipReason.MISSING_KOL))
            continue
        if line.product_id is None:
            logger.warning('Skipping order item %s of order %s: product not resolved', line.order_item_id, line.order_id)
            result.skipped.append(SkippedLine(line.order_id, line.order_item_id, SkipReason.MISSING_PRODUCT))
            continue

        seen.add(key)
        result.commissions.append(calculate_line_commission(line))

    if result.skipped:
        logger.debug('Attribution skipped rows: %s', result.skip_counts())
    return result
