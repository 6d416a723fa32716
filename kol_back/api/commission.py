from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse

from ..schemas.commission import (
    AffiliateLinkCreateRequest, AffiliateLinkResponse, CommissionProduct, DashboardStatsResponse,
    GroupBy, PageRequest, PageResponse, ReportResponse
)
from ..services import get_commission_service, get_link_service
from ..services.commission_service import CommissionService
from ..services.link_service import LinkService
from .errors import handle_service_errors

# KOL佣金报表与统计路由
kol_router = APIRouter(prefix='/kol', tags=['KOL佣金'])


# 1. KOL转化报表
@kol_router.get('/report/{kol_id}', response_model=ReportResponse)
@handle_service_errors('Failed to generate report')
def get_report(
    kol_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    product_id: Optional[int] = None,
    group_by: Optional[GroupBy] = None,
    service: CommissionService = Depends(get_commission_service)
):
    data = service.get_report(kol_id, start_date, end_date, product_id, group_by)
    return ReportResponse(data=data)


# 2. KOL统计面板
@kol_router.get('/stats/{kol_id}', response_model=DashboardStatsResponse)
@handle_service_errors('Failed to fetch KOL statistics')
def get_dashboard_stats(
    kol_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    service: CommissionService = Depends(get_commission_service)
):
    return DashboardStatsResponse(data=service.get_dashboard_stats(kol_id, start_date, end_date))


# 3. 可推广商品列表
@kol_router.get('/products', response_model=PageResponse[CommissionProduct])
@handle_service_errors('Failed to fetch products')
def get_commission_products(
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=100),
    search: Optional[str] = None,
    service: CommissionService = Depends(get_commission_service)
):
    return service.get_commission_products(PageRequest(page=page, page_size=limit, keyword=search))


# 4. 生成推广链接
@kol_router.post('/links', response_model=AffiliateLinkResponse)
@handle_service_errors('Failed to generate affiliate link')
def generate_affiliate_link(
    request: AffiliateLinkCreateRequest,
    service: LinkService = Depends(get_link_service)
):
    link, created = service.generate_link(request.kol_id, request.product_id)
    body = AffiliateLinkResponse(
        message='Affiliate link created successfully' if created else 'Affiliate link already exists',
        data={'link_id': link.link_id, 'affiliate_link': link.affiliate_link},
    )
    return JSONResponse(
        status_code=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        content=body.model_dump(),
    )
