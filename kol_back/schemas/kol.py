from datetime import date as date_type, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .commission import PageResponse

ManagedKolStatus = Literal['active', 'suspended', 'banned']


# KOL管理列表请求
class KolListRequest(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    search: Optional[str] = None
    status: Literal['all', 'active', 'suspended', 'banned'] = 'all'
    tier_id: Optional[int] = None
    sort_by: Literal['username', 'email', 'tier', 'commission_rate', 'modified_at'] = 'modified_at'
    sort_order: Literal['ASC', 'DESC', 'asc', 'desc'] = 'DESC'


class KolUserInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: int
    username: Optional[str] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class KolTierInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    tier_id: int
    tier_name: str
    commission_rate: float
    min_successful_purchases: int


class KolListItem(BaseModel):
    influencer_id: int
    status: str
    status_reason: Optional[str] = None
    modified_at: Optional[datetime] = None
    user: Optional[KolUserInfo] = None
    tier: Optional[KolTierInfo] = None
    total_sales: float
    total_commission: float
    total_affiliate_links: int


class KolListResponse(PageResponse[KolListItem]):
    pass


# KOL详情
class KolAffiliateLinkInfo(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    link_id: int
    product_id: int
    affiliate_link: str
    created_at: Optional[datetime] = None


class RecentTransaction(BaseModel):
    order_id: int
    date: Optional[datetime] = None
    amount: float
    commission: float


class KolPerformance(BaseModel):
    total_sales: float
    total_commission: float
    total_affiliate_links: int
    recent_transactions: List[RecentTransaction]


class KolDetail(BaseModel):
    influencer_id: int
    status: str
    status_reason: Optional[str] = None
    modified_at: Optional[datetime] = None
    user: Optional[KolUserInfo] = None
    tier: Optional[KolTierInfo] = None
    performance: KolPerformance
    affiliate_links: List[KolAffiliateLinkInfo]


class KolDetailResponse(BaseModel):
    success: bool = True
    data: KolDetail


# KOL状态变更
class KolStatusUpdateRequest(BaseModel):
    status: ManagedKolStatus
    reason: Optional[str] = Field(None, max_length=255)


class KolStatusData(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    influencer_id: int
    status: str
    status_reason: Optional[str] = None
    modified_at: Optional[datetime] = None


class KolStatusUpdateResponse(BaseModel):
    success: bool = True
    message: str
    data: KolStatusData


# 点击统计
class ClickStatRow(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    kol_id: int
    product_id: int
    date: date_type
    clicks: int
    successful_purchases: int
    conversion_rate: float
    country: Optional[str] = None
    city: Optional[str] = None
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None


class ClickTotals(BaseModel):
    total_clicks: int
    total_purchases: int
    overall_conversion_rate: float


class KolClickStats(BaseModel):
    kol_id: int
    aggregated: ClickTotals
    daily_stats: List[ClickStatRow]


class KolClickStatsResponse(BaseModel):
    success: bool = True
    data: KolClickStats


class ProductKolClicks(BaseModel):
    kol_id: int
    clicks: int
    purchases: int


class ProductClickStats(BaseModel):
    product_id: int
    aggregated: ClickTotals
    kol_stats: List[ProductKolClicks]
    daily_stats: List[ClickStatRow]


class ProductClickStatsResponse(BaseModel):
    success: bool = True
    data: ProductClickStats
