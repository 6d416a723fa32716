from datetime import date, datetime
from typing import Generic, List, Literal, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar('T')

PayoutStatus = Literal['pending', 'completed', 'failed']
GroupBy = Literal['day', 'week', 'month', 'kol', 'product']


# 通用分页请求
class PageRequest(BaseModel):
    page: int = Field(1, ge=1)
    page_size: int = Field(12, ge=1, le=100)
    keyword: Optional[str] = None  # 关键字查询


# 通用分页响应（泛型）
class PageResponse(BaseModel, Generic[T]):
    success: bool = True
    page: int
    page_size: int
    total: int
    total_pages: int
    data: List[T]


class CommissionAmounts(BaseModel):
    product: float = 0.0
    tier: float = 0.0
    total: float = 0.0


# 报表
class ReportSummary(BaseModel):
    total_orders: int
    total_revenue: float
    commission: CommissionAmounts


class ReportPeriod(BaseModel):
    start: Optional[str] = None
    end: str


class ReportData(BaseModel):
    summary: ReportSummary
    period: ReportPeriod
    group_by: Optional[GroupBy] = None
    details: List[dict]
    skipped: dict = Field(default_factory=dict, description='被跳过的明细数（按原因）')


class ReportResponse(BaseModel):
    success: bool = True
    data: ReportData


# KOL统计面板
class TopProduct(BaseModel):
    product_id: int
    name: Optional[str] = None
    commission_rate: float
    total_sold: int
    total_revenue: float
    commission: float


class DashboardStats(BaseModel):
    clicks: int
    successful_purchases: int
    conversion_rate: float
    total_orders: int
    total_quantity: int
    total_sales: float
    estimated_commission: float
    tier_name: str
    tier_commission_rate: float
    top_products: List[TopProduct]


class DashboardStatsResponse(BaseModel):
    success: bool = True
    data: DashboardStats


# 可推广商品
class CommissionProduct(BaseModel):
    product_id: int
    name: str
    description: Optional[str] = None
    image: str
    price: float
    commission_rate: float
    sold_count: int


# 推广链接
class AffiliateLinkCreateRequest(BaseModel):
    kol_id: int
    product_id: int


class AffiliateLinkData(BaseModel):
    link_id: int
    affiliate_link: str


class AffiliateLinkResponse(BaseModel):
    success: bool = True
    message: str
    data: AffiliateLinkData


class PurchaseTrackRequest(BaseModel):
    amount: float = Field(..., gt=0)
    order_id: Optional[int] = None
    country: Optional[str] = None
    city: Optional[str] = None


# 结算单
class PayoutResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    payout_id: int
    kol_id: int
    total_amount: float
    payment_status: str
    payout_date: Optional[date] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None


class PayoutListItem(PayoutResponse):
    kol_name: Optional[str] = None
    kol_email: Optional[str] = None


class PayoutListRequest(BaseModel):
    page: int = Field(1, ge=1)
    limit: int = Field(10, ge=1, le=100)
    search: Optional[str] = None
    status: Literal['all', 'pending', 'completed', 'failed'] = 'all'
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    sort_by: Literal['payout_date', 'created_at', 'total_amount', 'payment_status', 'payout_id'] = 'payout_date'
    sort_order: Literal['ASC', 'DESC', 'asc', 'desc'] = 'DESC'


class PayoutStatusStats(BaseModel):
    total_payouts: int
    total_amount: float
    pending_count: int
    pending_amount: float
    completed_count: int
    completed_amount: float
    failed_count: int
    failed_amount: float


class PayoutListResponse(PageResponse[PayoutListItem]):
    stats: PayoutStatusStats


class PayoutGenerateRequest(BaseModel):
    start_date: date
    end_date: date
    influencer_ids: List[int] = Field(default_factory=list)


class PayoutGenerateData(BaseModel):
    payouts: List[PayoutResponse]
    skipped_kol_ids: List[int]
    total_amount: float


class PayoutGenerateResponse(BaseModel):
    success: bool = True
    message: str
    data: PayoutGenerateData


class EligibleKol(BaseModel):
    kol_id: int
    kol_name: Optional[str] = None
    tier_name: Optional[str] = None
    orders_count: int
    revenue: float
    commission: CommissionAmounts
    total_amount: float


class EligibleData(BaseModel):
    period: ReportPeriod
    kols: List[EligibleKol]
    skipped_kol_ids: List[int]
    total_eligible_amount: float


class EligibleResponse(BaseModel):
    success: bool = True
    data: EligibleData


class PayoutStatusUpdateRequest(BaseModel):
    payment_status: PayoutStatus
    notes: Optional[str] = None


class PayoutStatusUpdateResponse(BaseModel):
    success: bool = True
    message: str
    data: PayoutResponse


class PayoutDetail(BaseModel):
    payout: PayoutResponse
    kol: dict
    coverage: Literal['explicit', 'timestamp']
    summary: ReportSummary
    orders: List[dict]


class PayoutDetailResponse(BaseModel):
    success: bool = True
    data: PayoutDetail


# KOL等级
class TierCreateRequest(BaseModel):
    tier_name: str = Field(..., min_length=1, max_length=50)
    min_successful_purchases: int
    commission_rate: float


class TierUpdateRequest(BaseModel):
    tier_name: Optional[str] = Field(None, min_length=1, max_length=50)
    min_successful_purchases: Optional[int] = None
    commission_rate: Optional[float] = None


class TierResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    tier_id: int
    tier_name: str
    min_successful_purchases: int
    commission_rate: float


class MessageResponse(BaseModel):
    success: bool = True
    message: str
