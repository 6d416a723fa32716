from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends

from ..schemas.kol import (
    KolClickStatsResponse, KolDetail, KolDetailResponse, KolListRequest, KolListResponse,
    KolStatusData, KolStatusUpdateRequest, KolStatusUpdateResponse, ProductClickStatsResponse
)
from ..services import get_kol_service
from ..services.kol_service import KolService
from .errors import handle_service_errors

# KOL管理路由（管理员）
kol_admin_router = APIRouter(prefix='/kol/influencers', tags=['KOL管理'])
# 点击/成交计数路由
click_stats_router = APIRouter(prefix='/kol/click-stats', tags=['推广跟踪'])


# 1. KOL列表
@kol_admin_router.get('', response_model=KolListResponse)
@handle_service_errors('Failed to fetch KOLs')
def list_kols(
    page_req: KolListRequest = Depends(),
    service: KolService = Depends(get_kol_service)
):
    return service.list_kols(page_req)


# 2. KOL详情
@kol_admin_router.get('/{kol_id}', response_model=KolDetailResponse)
@handle_service_errors('Failed to fetch KOL details')
def get_kol_detail(kol_id: int, service: KolService = Depends(get_kol_service)):
    return KolDetailResponse(data=KolDetail(**service.get_detail(kol_id)))


# 3. 变更KOL状态
@kol_admin_router.put('/{kol_id}/status', response_model=KolStatusUpdateResponse)
@handle_service_errors('Failed to update KOL status')
def update_kol_status(
    kol_id: int,
    request: KolStatusUpdateRequest,
    service: KolService = Depends(get_kol_service)
):
    kol = service.update_status(kol_id, request.status, request.reason)
    return KolStatusUpdateResponse(
        message=f'KOL has been {request.status} successfully',
        data=KolStatusData.model_validate(kol),
    )


@click_stats_router.get('/influencers/{kol_id}', response_model=KolClickStatsResponse)
@handle_service_errors('Failed to fetch KOL click statistics')
def get_kol_click_stats(
    kol_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    product_id: Optional[int] = None,
    service: KolService = Depends(get_kol_service)
):
    return KolClickStatsResponse(data=service.get_kol_click_stats(kol_id, start_date, end_date, product_id))


@click_stats_router.get('/products/{product_id}', response_model=ProductClickStatsResponse)
@handle_service_errors('Failed to fetch product click statistics')
def get_product_click_stats(
    product_id: int,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    service: KolService = Depends(get_kol_service)
):
    return ProductClickStatsResponse(data=service.get_product_click_stats(product_id, start_date, end_date))
