import logging
from functools import wraps

from fastapi import status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str, error: str = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={'success': False, 'message': message, 'error': error},
    )


def handle_service_errors(failure_message: str):
    """服务层异常统一转换：ValueError->400，LookupError->404，其他->500"""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except ValueError as e:
                return error_response(status.HTTP_400_BAD_REQUEST, str(e), str(e))
            except LookupError as e:
                return error_response(status.HTTP_404_NOT_FOUND, str(e), str(e))
            except Exception as e:
                logger.exception('%s: %s', failure_message, e)
                return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, failure_message, str(e))
        return wrapper
    return decorator
