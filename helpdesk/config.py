"""应用配置管理。

使用 Pydantic Settings 统一读取环境变量，便于在本地/生产之间切换。
"""

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """核心配置项。

    - ``database_url``：默认使用本地 SQLite，便于快速启动。
    - ``invite_ttl_seconds``：邀请码有效期，默认一天。
    - ``rating_*``：审阅者信任评分的平滑参数。
    """

    database_url: str = Field(
        default="sqlite:///./storage/helpdesk.db", description="SQLAlchemy 数据库 URL"
    )
    log_level: str = Field(default="INFO", description="日志级别")
    secret_key: str = Field(
        default="change-me-in-production", description="Token 签名密钥"
    )
    token_expire_hours: int = Field(default=24, description="Token 有效小时数")

    invite_ttl_seconds: int = Field(default=86400, description="邀请码有效秒数")
    invite_code_length: int = Field(default=8, description="邀请码长度")
    otp_length: int = Field(default=12, description="一次性密码长度")

    statement_timeout_seconds: float = Field(
        default=5.0, description="单条语句/锁等待超时"
    )
    retry_attempts: int = Field(default=3, description="瞬时故障重试次数")
    retry_wait_seconds: float = Field(default=0.2, description="重试间隔")

    rating_min_lists: int = Field(default=3, description="最少出现的信任列表数")
    rating_prior: float = Field(default=0.5, description="平滑先验")
    rating_smoothing: float = Field(default=1.0, description="平滑强度 m")
    rating_size_bias: float = Field(default=0.5, description="列表长度权重 L/(L+k) 中的 k")

    model_config = {
        "env_prefix": "HELPDESK_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
    }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """缓存后的全局配置实例。"""

    return Settings()
