"""
配置管理模块
从环境变量（或 .env 文件）加载企业微信配置
"""
from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class WeWorkSettings(BaseSettings):
    """企业微信配置"""

    model_config = SettingsConfigDict(
        env_prefix="WEWORK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    corp_id: str  # 企业ID
    corp_secret: str  # 应用凭证密钥
    api_base_url: str = "https://qyapi.weixin.qq.com/cgi-bin"
    token_cache_file: str = ".wework_token_cache"  # 为空时不落盘
    request_timeout: float = 30  # 请求超时时间（秒）
    log_level: str = "INFO"

    @model_validator(mode="after")
    def check_credentials(self) -> "WeWorkSettings":
        if not self.corp_id or not self.corp_secret:
            raise ValueError("WEWORK_CORP_ID and WEWORK_CORP_SECRET must not be empty")
        self.api_base_url = self.api_base_url.rstrip("/")
        return self
