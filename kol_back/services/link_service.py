import logging
from typing import Optional, Tuple
from urllib.parse import quote

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import Settings
from ..database.models import InfluencerAffiliateLink
from ..repositories import AffiliateLinkRepository, ClickStatsRepository, KolRepository, ProductRepository
from ..utils.tracking_token import InvalidTrackingToken, decode_token, encode_token

logger = logging.getLogger(__name__)


class LinkService:
    def __init__(self,
                 db: Session,
                 settings: Settings,
                 link_repo: AffiliateLinkRepository,
                 click_stats_repo: ClickStatsRepository,
                 kol_repo: KolRepository,
                 product_repo: ProductRepository):
        self.db = db
        self.settings = settings
        self.link_repo = link_repo
        self.click_stats_repo = click_stats_repo
        self.kol_repo = kol_repo
        self.product_repo = product_repo

    def _tracking_url(self, token: str) -> str:
        return f'{self.settings.WEBSITE_URL}/api/track/{quote(token, safe="")}'

    def product_url(self, product_id: int) -> str:
        return f'{self.settings.WEBSITE_URL}/product/{product_id}'

    # 1. 生成推广链接（同一KOL+商品重复请求返回已有链接）
    def generate_link(self, kol_id: int, product_id: int) -> Tuple[InfluencerAffiliateLink, bool]:
        if not self.kol_repo.exists(kol_id):
            raise LookupError('Influencer not found')
        product = self.product_repo.get(product_id)
        if not product:
            raise LookupError('Product not found')
        if not product.commission_rate or product.commission_rate <= 0:
            raise ValueError('This product does not have a commission rate set')

        existing = self.link_repo.get_by_kol_product(kol_id, product_id)
        if existing:
            return existing, False

        logger.info('Generating affiliate link for product_id: %s, influencer_id: %s', product_id, kol_id)
        try:
            link = self.link_repo.create_pending(kol_id, product_id)
            token = encode_token(self.settings.AFFILIATE_SECRET, kol_id, product_id, link.link_id)
            link.affiliate_link = self._tracking_url(token)
            self.db.commit()
        except IntegrityError:
            # 并发请求已创建同一KOL+商品的链接
            self.db.rollback()
            existing = self.link_repo.get_by_kol_product(kol_id, product_id)
            if existing:
                return existing, False
            raise
        self.db.refresh(link)

        try:
            self.click_stats_repo.ensure(kol_id, product_id)
            self.db.commit()
        except Exception as e:
            # 统计初始化失败不影响链接创建
            self.db.rollback()
            logger.error('Error creating initial stats: %s', e)
        return link, True

    # 2. 解析跟踪令牌并记录点击，失败返回None（调用方跳转首页）
    def resolve_click(self, token: str, tracking_data: Optional[dict] = None) -> Optional[InfluencerAffiliateLink]:
        try:
            payload = decode_token(self.settings.AFFILIATE_SECRET, token, self.settings.TRACKING_TOKEN_MAX_AGE_DAYS)
        except InvalidTrackingToken as e:
            logger.warning('Rejected tracking token: %s', e)
            return None

        link = self.link_repo.get(payload.link_id)
        if not link or link.influencer_id != payload.kol_id or link.product_id != payload.product_id:
            logger.warning('Tracking token refers to unknown link %s', payload.link_id)
            return None

        try:
            self.click_stats_repo.increment_clicks(link.influencer_id, link.product_id, tracking_data)
            self.db.commit()
            logger.info('Tracked click for KOL %s, product %s', link.influencer_id, link.product_id)
        except Exception as e:
            self.db.rollback()
            logger.error('Error tracking click: %s', e)
        return link

    # 3. 手动记录推广成交（管理员）
    def track_purchase(self, link_id: int, amount: float, tracking_data: Optional[dict] = None) -> bool:
        link = self.link_repo.get(link_id)
        if not link:
            raise LookupError('Affiliate link not found')
        try:
            self.click_stats_repo.increment_purchases(link.influencer_id, link.product_id, tracking_data)
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.error('Error tracking purchase: %s', e)
            return False
        logger.info('Tracked purchase for KOL %s, product %s, amount %s', link.influencer_id, link.product_id, amount)
        return True
