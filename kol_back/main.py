import logging
import traceback
from datetime import datetime

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from .api.commission import kol_router
from .api.kol import click_stats_router, kol_admin_router
from .api.payout import payout_router
from .api.tier import tier_router
from .api.tracking import tracking_router
from .config import get_settings
from .database import Base, engine

settings = get_settings()

# 初始化日志配置
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[logging.FileHandler(settings.LOG_FILE), logging.StreamHandler()]
)
logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    app = FastAPI(title='KOL Affiliate Backend', debug=settings.DEBUG)

    # 创建所有表（首次运行时执行）
    Base.metadata.create_all(bind=engine)

    app.include_router(kol_router)
    app.include_router(payout_router)
    app.include_router(tier_router)
    app.include_router(kol_admin_router)
    app.include_router(click_stats_router)
    app.include_router(tracking_router)

    @app.get('/health')
    def health_check():
        return {'status': 'ok'}

    # 全局异常处理中间件
    @app.middleware('http')
    async def global_exception_handler(request: Request, call_next):
        try:
            return await call_next(request)
        except Exception as e:
            # 记录完整异常堆栈
            error_trace = traceback.format_exc()
            logger.error(f'全局异常捕获：{str(e)}{error_trace}')
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    'success': False,
                    'message': '服务器内部错误',
                    'error': str(e),
                    'timestamp': datetime.now().isoformat()
                }
            )

    return app


app = create_app()
