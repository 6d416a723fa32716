from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from ..config import get_settings

settings = get_settings()

# SQLite 需要关闭同线程检查，其他数据库开启连接健康检查
if settings.DATABASE_URL.startswith('sqlite'):
    engine = create_engine(settings.DATABASE_URL, echo=settings.DEBUG, connect_args={'check_same_thread': False})
else:
    engine = create_engine(settings.DATABASE_URL, echo=settings.DEBUG, pool_pre_ping=True)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
