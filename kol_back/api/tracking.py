import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse

from ..config import Settings, get_settings
from ..schemas.commission import MessageResponse, PurchaseTrackRequest
from ..services import get_link_service
from ..services.link_service import LinkService
from .errors import handle_service_errors

logger = logging.getLogger(__name__)

# 推广链接跟踪路由（浏览器访问，失败一律跳转首页）
tracking_router = APIRouter(prefix='/api/track', tags=['推广跟踪'])


# 记录推广成交（管理员）
@tracking_router.post('/purchase/{link_id}', response_model=MessageResponse)
@handle_service_errors('Failed to track purchase')
def track_purchase(
    link_id: int,
    request: PurchaseTrackRequest,
    service: LinkService = Depends(get_link_service)
):
    service.track_purchase(link_id, request.amount, {'country': request.country, 'city': request.city})
    return MessageResponse(message='Purchase tracked successfully')


@tracking_router.get('/{token:path}')
def track_affiliate_link(
    token: str,
    request: Request,
    service: LinkService = Depends(get_link_service),
    settings: Settings = Depends(get_settings)
):
    try:
        link = service.resolve_click(token, {
            'utm_source': request.query_params.get('utm_source'),
            'utm_medium': request.query_params.get('utm_medium'),
            'utm_campaign': request.query_params.get('utm_campaign'),
            'country': request.query_params.get('country'),
            'city': request.query_params.get('city'),
        })
    except Exception as e:
        logger.exception('Error resolving tracking link: %s', e)
        link = None

    if not link:
        return RedirectResponse(url=settings.WEBSITE_URL, status_code=302)

    response = RedirectResponse(url=service.product_url(link.product_id), status_code=302)
    response.set_cookie(
        settings.TRACKING_COOKIE_NAME,
        str(link.link_id),
        max_age=settings.TRACKING_COOKIE_MAX_AGE_DAYS * 24 * 60 * 60,
        httponly=True,
        secure=not settings.DEBUG,
        samesite='lax',
    )
    return response
