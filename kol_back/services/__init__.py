from fastapi import Depends
from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..database.session import get_db
from ..repositories import (get_attribution_repo, get_click_stats_repo, get_kol_repo,
                            get_link_repo, get_payout_repo, get_product_repo)
from ..repositories import (AffiliateLinkRepository, AttributionRepository, ClickStatsRepository,
                            KolRepository, PayoutRepository, ProductRepository)
from .commission_service import CommissionService
from .kol_service import KolService
from .link_service import LinkService
from .payout_service import PayoutService
from .tier_service import TierService


# 依赖函数：生成各Service实例
def get_commission_service(
    attribution_repo: AttributionRepository = Depends(get_attribution_repo),
    click_stats_repo: ClickStatsRepository = Depends(get_click_stats_repo),
    kol_repo: KolRepository = Depends(get_kol_repo),
    product_repo: ProductRepository = Depends(get_product_repo),
    db: Session = Depends(get_db)
):
    return CommissionService(
        db=db,
        attribution_repo=attribution_repo,
        click_stats_repo=click_stats_repo,
        kol_repo=kol_repo,
        product_repo=product_repo
    )


def get_payout_service(
    payout_repo: PayoutRepository = Depends(get_payout_repo),
    attribution_repo: AttributionRepository = Depends(get_attribution_repo),
    kol_repo: KolRepository = Depends(get_kol_repo),
    db: Session = Depends(get_db)
):
    return PayoutService(
        db=db,
        payout_repo=payout_repo,
        attribution_repo=attribution_repo,
        kol_repo=kol_repo
    )


def get_link_service(
    link_repo: AffiliateLinkRepository = Depends(get_link_repo),
    click_stats_repo: ClickStatsRepository = Depends(get_click_stats_repo),
    kol_repo: KolRepository = Depends(get_kol_repo),
    product_repo: ProductRepository = Depends(get_product_repo),
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db)
):
    return LinkService(
        db=db,
        settings=settings,
        link_repo=link_repo,
        click_stats_repo=click_stats_repo,
        kol_repo=kol_repo,
        product_repo=product_repo
    )


def get_tier_service(
    kol_repo: KolRepository = Depends(get_kol_repo),
    db: Session = Depends(get_db)
):
    return TierService(db=db, kol_repo=kol_repo)


def get_kol_service(
    kol_repo: KolRepository = Depends(get_kol_repo),
    attribution_repo: AttributionRepository = Depends(get_attribution_repo),
    click_stats_repo: ClickStatsRepository = Depends(get_click_stats_repo),
    product_repo: ProductRepository = Depends(get_product_repo),
    db: Session = Depends(get_db)
):
    return KolService(
        db=db,
        kol_repo=kol_repo,
        attribution_repo=attribution_repo,
        click_stats_repo=click_stats_repo,
        product_repo=product_repo
    )
