from fastapi import Depends
from sqlalchemy.orm import Session

from ..database.session import get_db
from .affiliate_link_repository import AffiliateLinkRepository
from .attribution_repository import AttributionRepository
from .click_stats_repository import ClickStatsRepository
from .kol_repository import KolRepository
from .payout_repository import PayoutRepository
from .product_repository import ProductRepository


# 依赖函数：生成各Repository实例
def get_attribution_repo(db: Session = Depends(get_db)):
    return AttributionRepository(db)


def get_payout_repo(db: Session = Depends(get_db)):
    return PayoutRepository(db)


def get_link_repo(db: Session = Depends(get_db)):
    return AffiliateLinkRepository(db)


def get_click_stats_repo(db: Session = Depends(get_db)):
    return ClickStatsRepository(db)


def get_kol_repo(db: Session = Depends(get_db)):
    return KolRepository(db)


def get_product_repo(db: Session = Depends(get_db)):
    return ProductRepository(db)
