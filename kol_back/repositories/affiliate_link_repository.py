from typing import Optional

from sqlalchemy.orm import Session

from ..database.models import InfluencerAffiliateLink


class AffiliateLinkRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, link_id: int) -> Optional[InfluencerAffiliateLink]:
        return self.db.query(InfluencerAffiliateLink).filter(InfluencerAffiliateLink.link_id == link_id).first()

    def get_by_kol_product(self, kol_id: int, product_id: int) -> Optional[InfluencerAffiliateLink]:
        return self.db.query(InfluencerAffiliateLink) \
                      .filter(InfluencerAffiliateLink.influencer_id == kol_id) \
                      .filter(InfluencerAffiliateLink.product_id == product_id) \
                      .first()

    def create_pending(self, kol_id: int, product_id: int) -> InfluencerAffiliateLink:
        # 先插入空URL获取link_id，再写入跟踪链接
        link = InfluencerAffiliateLink(influencer_id=kol_id, product_id=product_id, affiliate_link='')
        self.db.add(link)
        self.db.flush()
        return link
