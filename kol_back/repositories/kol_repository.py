from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..database.models import Influencer, InfluencerAffiliateLink, InfluencerTier, User
from ..schemas.kol import KolListRequest

# 列表默认只展示已审核的KOL
MANAGED_KOL_STATUSES = ('active', 'suspended', 'banned')

SORTABLE_FIELDS = {
    'username': User.username,
    'email': User.email,
    'tier': InfluencerTier.tier_name,
    'commission_rate': InfluencerTier.commission_rate,
    'modified_at': Influencer.modified_at,
}


class KolRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, kol_id: int) -> Optional[Influencer]:
        return self.db.query(Influencer).filter(Influencer.influencer_id == kol_id).first()

    def get_with_tier(self, kol_id: int):
        # 返回 (Influencer, InfluencerTier|None, User|None)
        return self.db.query(Influencer, InfluencerTier, User) \
                      .outerjoin(InfluencerTier, InfluencerTier.tier_id == Influencer.tier_id) \
                      .outerjoin(User, User.user_id == Influencer.user_id) \
                      .filter(Influencer.influencer_id == kol_id) \
                      .first()

    def exists(self, kol_id: int) -> bool:
        return self.db.query(Influencer.influencer_id).filter(Influencer.influencer_id == kol_id).first() is not None

    def get_active_ids(self) -> List[int]:
        rows = self.db.query(Influencer.influencer_id) \
                      .filter(Influencer.status == 'active') \
                      .order_by(Influencer.influencer_id) \
                      .all()
        return [r.influencer_id for r in rows]

    # KOL管理列表（状态、等级、姓名/邮箱关键字、排序）
    def list_kols(self, req: KolListRequest) -> Tuple[list, int]:
        query = self.db.query(Influencer, InfluencerTier, User) \
                       .join(User, User.user_id == Influencer.user_id) \
                       .outerjoin(InfluencerTier, InfluencerTier.tier_id == Influencer.tier_id)
        if req.status == 'all':
            query = query.filter(Influencer.status.in_(MANAGED_KOL_STATUSES))
        else:
            query = query.filter(Influencer.status == req.status)
        if req.tier_id is not None:
            query = query.filter(Influencer.tier_id == req.tier_id)
        if req.search:
            keyword = f'%{req.search}%'
            query = query.filter(or_(
                User.username.like(keyword),
                User.email.like(keyword),
                User.first_name.like(keyword),
                User.last_name.like(keyword),
            ))
        total = query.count()
        sort_col = SORTABLE_FIELDS.get(req.sort_by, Influencer.modified_at)
        sort_col = sort_col.asc() if req.sort_order.upper() == 'ASC' else sort_col.desc()
        records = query.order_by(sort_col, Influencer.influencer_id.desc()) \
                       .offset((req.page - 1) * req.limit) \
                       .limit(req.limit) \
                       .all()
        return records, total

    def count_links(self, kol_ids: Sequence[int]) -> Dict[int, int]:
        rows = self.db.query(InfluencerAffiliateLink.influencer_id, func.count(InfluencerAffiliateLink.link_id)) \
                      .filter(InfluencerAffiliateLink.influencer_id.in_(list(kol_ids))) \
                      .group_by(InfluencerAffiliateLink.influencer_id) \
                      .all()
        return {kol_id: count for kol_id, count in rows}

    def list_links(self, kol_id: int) -> List[InfluencerAffiliateLink]:
        return self.db.query(InfluencerAffiliateLink) \
                      .filter(InfluencerAffiliateLink.influencer_id == kol_id) \
                      .order_by(InfluencerAffiliateLink.created_at.desc(), InfluencerAffiliateLink.link_id.desc()) \
                      .all()

    # 等级
    def list_tiers(self) -> List[InfluencerTier]:
        return self.db.query(InfluencerTier).order_by(InfluencerTier.min_successful_purchases.asc()).all()

    def get_tier(self, tier_id: int) -> Optional[InfluencerTier]:
        return self.db.query(InfluencerTier).filter(InfluencerTier.tier_id == tier_id).first()

    def get_tier_by_name(self, tier_name: str) -> Optional[InfluencerTier]:
        return self.db.query(InfluencerTier).filter(InfluencerTier.tier_name == tier_name).first()

    def count_tier_members(self, tier_id: int) -> int:
        return self.db.query(func.count(Influencer.influencer_id)).filter(Influencer.tier_id == tier_id).scalar()
