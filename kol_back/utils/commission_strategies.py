from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Hashable, List, Optional

from .commission import LineCommission


def _new_commission() -> dict:
    return {'product': 0.0, 'tier': 0.0, 'total': 0.0}


def _add_commission(target: dict, item: LineCommission):
    target['product'] += item.product_amount
    target['tier'] += item.tier_amount
    target['total'] += item.total_amount


def summarize(items: List[LineCommission]) -> dict:
    """不分组的汇总：去重订单数、总成交额、三项佣金合计"""
    commission = _new_commission()
    for item in items:
        _add_commission(commission, item)
    return {
        'total_orders': len({item.order_id for item in items}),
        'total_revenue': sum(item.line_total for item in items),
        'commission': commission,
    }


class GroupingStrategy(ABC):
    @abstractmethod
    def key(self, item: LineCommission) -> Hashable:
        pass

    @abstractmethod
    def new_bucket(self, item: LineCommission) -> dict:
        pass

    @abstractmethod
    def finalize(self, bucket: dict) -> dict:
        pass

    @abstractmethod
    def sort(self, rows: List[dict]) -> List[dict]:
        pass

    def group(self, items: List[LineCommission]) -> List[dict]:
        grouped = {}
        for item in items:
            k = self.key(item)
            if k not in grouped:
                grouped[k] = self.new_bucket(item)
            bucket = grouped[k]
            bucket['orders'].add(item.order_id)
            bucket['kols'].add(item.kol_id)
            bucket['products'].add(item.product_id)
            bucket['total_quantity'] += item.quantity
            bucket['revenue'] += item.line_total
            _add_commission(bucket['commission'], item)
        # sorted() 为稳定排序，相同值保持插入顺序
        return self.sort([self.finalize(b) for b in grouped.values()])

    @staticmethod
    def _bucket() -> dict:
        return {
            'orders': set(),
            'kols': set(),
            'products': set(),
            'total_quantity': 0,
            'revenue': 0.0,
            'commission': _new_commission(),
        }


# 按时间分组（日/周/月），按时间升序
class PeriodGrouping(GroupingStrategy):
    @abstractmethod
    def period(self, item: LineCommission) -> str:
        pass

    def key(self, item: LineCommission) -> Hashable:
        return self.period(item)

    def new_bucket(self, item: LineCommission) -> dict:
        bucket = self._bucket()
        bucket['period'] = self.period(item)
        return bucket

    def finalize(self, bucket: dict) -> dict:
        return {
            'period': bucket['period'],
            'orders_count': len(bucket['orders']),
            'revenue': bucket['revenue'],
            'commission': bucket['commission'],
            'unique_kols': len(bucket['kols']),
            'unique_products': len(bucket['products']),
        }

    def sort(self, rows: List[dict]) -> List[dict]:
        # 日期字符串定长，字典序即时间序
        return sorted(rows, key=lambda r: r['period'])


class DayGrouping(PeriodGrouping):
    def period(self, item: LineCommission) -> str:
        return item.order_date.strftime('%Y-%m-%d')


class WeekGrouping(PeriodGrouping):
    def period(self, item: LineCommission) -> str:
        # 周从周日开始
        offset = (item.order_date.weekday() + 1) % 7
        return (item.order_date - timedelta(days=offset)).strftime('%Y-%m-%d')


class MonthGrouping(PeriodGrouping):
    def period(self, item: LineCommission) -> str:
        return item.order_date.strftime('%Y-%m')


# 按KOL分组，按总佣金降序
class KolGrouping(GroupingStrategy):
    def key(self, item: LineCommission) -> Hashable:
        return item.kol_id

    def new_bucket(self, item: LineCommission) -> dict:
        bucket = self._bucket()
        bucket.update(kol_id=item.kol_id, kol_name=item.kol_name, tier_name=item.tier_name,
                      tier_commission_rate=item.tier_rate)
        return bucket

    def finalize(self, bucket: dict) -> dict:
        return {
            'kol_id': bucket['kol_id'],
            'kol_name': bucket['kol_name'],
            'tier_name': bucket['tier_name'],
            'tier_commission_rate': bucket['tier_commission_rate'],
            'orders_count': len(bucket['orders']),
            'unique_products': len(bucket['products']),
            'total_quantity': bucket['total_quantity'],
            'revenue': bucket['revenue'],
            'commission': bucket['commission'],
        }

    def sort(self, rows: List[dict]) -> List[dict]:
        return sorted(rows, key=lambda r: r['commission']['total'], reverse=True)


# 按商品分组，按成交额降序
class ProductGrouping(GroupingStrategy):
    def key(self, item: LineCommission) -> Hashable:
        return item.product_id

    def new_bucket(self, item: LineCommission) -> dict:
        bucket = self._bucket()
        bucket.update(product_id=item.product_id, product_name=item.product_name,
                      product_commission_rate=item.product_rate)
        return bucket

    def finalize(self, bucket: dict) -> dict:
        return {
            'product_id': bucket['product_id'],
            'product_name': bucket['product_name'],
            'product_commission_rate': bucket['product_commission_rate'],
            'orders_count': len(bucket['orders']),
            'unique_kols': len(bucket['kols']),
            'total_quantity': bucket['total_quantity'],
            'revenue': bucket['revenue'],
            'commission': bucket['commission'],
        }

    def sort(self, rows: List[dict]) -> List[dict]:
        return sorted(rows, key=lambda r: r['revenue'], reverse=True)


GROUP_BY_OPTIONS = ('day', 'week', 'month', 'kol', 'product')


def get_grouping_strategy(group_by: str) -> GroupingStrategy:
    strategies = {
        'day': DayGrouping(),
        'week': WeekGrouping(),
        'month': MonthGrouping(),
        'kol': KolGrouping(),
        'product': ProductGrouping(),
    }
    if group_by not in strategies:
        raise ValueError(f'Unsupported group_by: {group_by}')
    return strategies[group_by]


def aggregate(items: List[LineCommission], group_by: Optional[str] = None) -> dict:
    """汇总 + 可选分组明细；空输入返回全零汇总与空列表"""
    details = get_grouping_strategy(group_by).group(items) if group_by else []
    return {'summary': summarize(items), 'details': details}
