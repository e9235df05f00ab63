"""
代币聚合服务配置模块
支持从环境变量读取配置，自动检测 Docker 容器环境并启用服务发现
"""

import os
from functools import lru_cache
from typing import List

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _is_docker() -> bool:
    """检测当前是否运行在 Docker 容器内"""
    return (
        os.path.exists("/.dockerenv")
        or os.environ.get("DOCKER_CONTAINER", "").lower() in ("1", "true", "yes")
    )


def _default_redis_host() -> str:
    """Docker 环境使用服务名 'redis'，本地使用 'localhost'"""
    return "redis" if _is_docker() else "localhost"


class TokenServiceSettings(BaseSettings):
    """代币聚合服务配置"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── 基础配置 ──────────────────────────────────────────
    HOST: str = Field(default="0.0.0.0")
    PORT: int = Field(default=3000)
    DEBUG: bool = Field(default=False)
    ALLOWED_ORIGINS: List[str] = Field(
        default_factory=lambda: ["*"]
    )

    # ── Redis 配置（支持服务发现） ─────────────────────────
    REDIS_HOST: str = Field(default_factory=_default_redis_host)
    REDIS_PORT: int = Field(default=6379)
    REDIS_PASSWORD: str = Field(default="")
    REDIS_DB: int = Field(default=0)
    REDIS_ENABLED: bool = Field(default=True)
    REDIS_MAX_CONNECTIONS: int = Field(default=20)
    REDIS_URL_OVERRIDE: str = Field(default="")  # 完整连接串，优先于 HOST/PORT

    @property
    def REDIS_URL(self) -> str:
        if self.REDIS_URL_OVERRIDE:
            return self.REDIS_URL_OVERRIDE
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    # ── 上游数据源配置 ─────────────────────────────────────
    DEXSCREENER_API: str = Field(default="https://api.dexscreener.com/latest/dex")
    JUPITER_API: str = Field(default="https://lite-api.jup.ag/tokens/v2/search")
    UPSTREAM_TIMEOUT: float = Field(default=5.0)  # 单次上游请求超时（秒）
    UPSTREAM_USER_AGENT: str = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
        )
    )

    # ── 缓存 / 合并配置 ────────────────────────────────────
    CACHE_TTL: int = Field(default=30)                 # 聚合结果 TTL（秒）
    CACHE_KEY_PREFIX: str = Field(default="tokens_v5")  # 记录结构变化时需升级版本号
    MERGE_ENRICH_FIELDS: bool = Field(default=False)
    DEFAULT_QUERY: str = Field(default="SOL")

    # ── 推送配置 ──────────────────────────────────────────
    BROADCAST_ENABLED: bool = Field(default=True)
    BROADCAST_QUERY: str = Field(default="SOL")
    BROADCAST_INTERVAL: float = Field(default=10.0)
    BROADCAST_EVENT: str = Field(default="price-update")

    # ── 日志配置 ──────────────────────────────────────────
    LOG_LEVEL: str = Field(default="INFO")


@lru_cache
def get_settings() -> TokenServiceSettings:
    """获取全局配置（单例）"""
    return TokenServiceSettings()


settings = get_settings()
