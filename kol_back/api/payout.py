from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from ..schemas.commission import (
    EligibleResponse, PayoutDetailResponse, PayoutGenerateRequest, PayoutGenerateResponse,
    PayoutListRequest, PayoutListResponse, PayoutResponse, PayoutStatusUpdateRequest,
    PayoutStatusUpdateResponse
)
from ..services import get_payout_service
from ..services.payout_service import PayoutService
from .errors import handle_service_errors

# 结算管理路由
payout_router = APIRouter(prefix='/kol/payouts', tags=['结算管理'])

XLSX_MEDIA_TYPE = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'


# 1. 结算单列表
@payout_router.get('', response_model=PayoutListResponse)
@handle_service_errors('Failed to fetch KOL payouts')
def list_payouts(
    page_req: PayoutListRequest = Depends(),
    service: PayoutService = Depends(get_payout_service)
):
    return service.list_payouts(page_req)


# 2. 导出Excel
@payout_router.get('/export')
@handle_service_errors('Failed to export KOL payout report')
def export_payouts(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    status: Literal['all', 'pending', 'completed', 'failed'] = 'all',
    service: PayoutService = Depends(get_payout_service)
):
    content = service.export_report(start_date, end_date, status)
    file_name = f'kol_payouts_{start_date}_to_{end_date}.xlsx'
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={'Content-Disposition': f'attachment; filename={file_name}'},
    )


# 3. 可结算KOL预览
@payout_router.get('/eligible', response_model=EligibleResponse)
@handle_service_errors('Failed to compute eligible payouts')
def get_eligible(
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    service: PayoutService = Depends(get_payout_service)
):
    return EligibleResponse(data=service.get_eligible(start_date, end_date))


# 4. 生成结算单
@payout_router.post('/generate', response_model=PayoutGenerateResponse)
@handle_service_errors('Failed to generate payouts')
def generate_payouts(
    request: PayoutGenerateRequest,
    service: PayoutService = Depends(get_payout_service)
):
    result = service.generate_payouts(request.start_date, request.end_date, request.influencer_ids)
    payouts = [PayoutResponse.model_validate(p) for p in result['payouts']]
    if payouts:
        message = f'Generated {len(payouts)} payouts'
    else:
        message = 'No payouts generated'
    if result['skipped_kol_ids']:
        message += f'; skipped {len(result["skipped_kol_ids"])} KOLs already paid for this period'
    return PayoutGenerateResponse(
        message=message,
        data={
            'payouts': payouts,
            'skipped_kol_ids': result['skipped_kol_ids'],
            'total_amount': result['total_amount'],
        },
    )


# 5. 更新结算状态
@payout_router.put('/{payout_id}/status', response_model=PayoutStatusUpdateResponse)
@handle_service_errors('Failed to update payout status')
def update_payout_status(
    payout_id: int,
    request: PayoutStatusUpdateRequest,
    service: PayoutService = Depends(get_payout_service)
):
    payout = service.update_status(payout_id, request.payment_status, request.notes)
    return PayoutStatusUpdateResponse(
        message='Payout status updated successfully',
        data=PayoutResponse.model_validate(payout),
    )


# 6. 结算单详情
@payout_router.get('/{payout_id}', response_model=PayoutDetailResponse)
@handle_service_errors('Failed to fetch payout details')
def get_payout_detail(
    payout_id: int,
    service: PayoutService = Depends(get_payout_service)
):
    detail = service.get_detail(payout_id)
    detail['payout'] = PayoutResponse.model_validate(detail['payout'])
    return PayoutDetailResponse(data=detail)
