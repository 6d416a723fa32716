from typing import List

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from ..schemas.commission import MessageResponse, TierCreateRequest, TierResponse, TierUpdateRequest
from ..services import get_tier_service
from ..services.tier_service import TierService
from .errors import handle_service_errors

# KOL等级路由
tier_router = APIRouter(prefix='/kol/tiers', tags=['KOL等级'])


@tier_router.get('', response_model=List[TierResponse])
@handle_service_errors('Failed to fetch KOL tiers')
def list_tiers(service: TierService = Depends(get_tier_service)):
    return [TierResponse.model_validate(t) for t in service.list_tiers()]


@tier_router.get('/{tier_id}', response_model=TierResponse)
@handle_service_errors('Failed to fetch KOL tier')
def get_tier(tier_id: int, service: TierService = Depends(get_tier_service)):
    return TierResponse.model_validate(service.get_tier(tier_id))


@tier_router.post('', response_model=TierResponse, status_code=status.HTTP_201_CREATED)
@handle_service_errors('Failed to create KOL tier')
def create_tier(request: TierCreateRequest, service: TierService = Depends(get_tier_service)):
    tier = service.create_tier(request)
    return JSONResponse(status_code=status.HTTP_201_CREATED,
                        content=TierResponse.model_validate(tier).model_dump())


@tier_router.put('/{tier_id}', response_model=TierResponse)
@handle_service_errors('Failed to update KOL tier')
def update_tier(tier_id: int, request: TierUpdateRequest, service: TierService = Depends(get_tier_service)):
    return TierResponse.model_validate(service.update_tier(tier_id, request))


@tier_router.delete('/{tier_id}', response_model=MessageResponse)
@handle_service_errors('Failed to delete KOL tier')
def delete_tier(tier_id: int, service: TierService = Depends(get_tier_service)):
    service.delete_tier(tier_id)
    return MessageResponse(message='KOL tier deleted successfully')
