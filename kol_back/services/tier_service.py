import logging
from typing import List

from sqlalchemy.orm import Session

from ..database.models import InfluencerTier
from ..repositories import KolRepository
from ..schemas.commission import TierCreateRequest, TierUpdateRequest

logger = logging.getLogger(__name__)

# 新建等级比例上限低于修改上限
MAX_CREATE_RATE = 30
MAX_UPDATE_RATE = 100


class TierService:
    def __init__(self, db: Session, kol_repo: KolRepository):
        self.db = db
        self.kol_repo = kol_repo

    def list_tiers(self) -> List[InfluencerTier]:
        return self.kol_repo.list_tiers()

    def get_tier(self, tier_id: int) -> InfluencerTier:
        tier = self.kol_repo.get_tier(tier_id)
        if not tier:
            raise LookupError('Tier not found')
        return tier

    def create_tier(self, req: TierCreateRequest) -> InfluencerTier:
        if req.min_successful_purchases < 0:
            raise ValueError('Minimum successful purchases must be a non-negative number')
        if req.commission_rate < 0 or req.commission_rate > MAX_CREATE_RATE:
            raise ValueError(f'Commission rate must be between 0 and {MAX_CREATE_RATE}')
        name = req.tier_name.strip()
        if self.kol_repo.get_tier_by_name(name):
            raise ValueError('A tier with this name already exists')

        tier = InfluencerTier(
            tier_name=name,
            min_successful_purchases=req.min_successful_purchases,
            commission_rate=req.commission_rate,
        )
        self.db.add(tier)
        self.db.commit()
        self.db.refresh(tier)
        logger.info('Created KOL tier %s (%s%%)', tier.tier_name, tier.commission_rate)
        return tier

    def update_tier(self, tier_id: int, req: TierUpdateRequest) -> InfluencerTier:
        tier = self.get_tier(tier_id)
        if req.min_successful_purchases is not None and req.min_successful_purchases < 0:
            raise ValueError('Minimum successful purchases must be a non-negative number')
        if req.commission_rate is not None and (req.commission_rate < 0 or req.commission_rate > MAX_UPDATE_RATE):
            raise ValueError(f'Commission rate must be between 0 and {MAX_UPDATE_RATE}')
        if req.tier_name:
            name = req.tier_name.strip()
            other = self.kol_repo.get_tier_by_name(name)
            if other and other.tier_id != tier.tier_id:
                raise ValueError('A tier with this name already exists')
            tier.tier_name = name
        if req.min_successful_purchases is not None:
            tier.min_successful_purchases = req.min_successful_purchases
        if req.commission_rate is not None:
            tier.commission_rate = req.commission_rate
        self.db.commit()
        self.db.refresh(tier)
        return tier

    def delete_tier(self, tier_id: int):
        tier = self.get_tier(tier_id)
        if self.kol_repo.count_tier_members(tier_id) > 0:
            raise ValueError('Cannot delete tier that is being used by influencers')
        self.db.delete(tier)
        self.db.commit()
        logger.info('Deleted KOL tier %s', tier_id)
