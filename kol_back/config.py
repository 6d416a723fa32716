from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """从环境变量 / .env 读取的应用配置"""

    model_config = SettingsConfigDict(env_file='.env', env_file_encoding='utf-8', case_sensitive=True)

    # 数据库（默认SQLite，db文件在当前目录下）
    DATABASE_URL: str = 'sqlite:///./kol_back.db'
    DEBUG: bool = False

    # 日志
    LOG_LEVEL: str = 'INFO'
    LOG_FILE: str = 'app.log'

    # 推广链接
    AFFILIATE_SECRET: str = 'change-me'
    WEBSITE_URL: str = 'http://localhost:3000'
    TRACKING_TOKEN_MAX_AGE_DAYS: int = 365
    TRACKING_COOKIE_MAX_AGE_DAYS: int = 30
    TRACKING_COOKIE_NAME: str = 'kol_affiliate'


@lru_cache()
def get_settings() -> Settings:
    return Settings()
