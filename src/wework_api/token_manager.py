"""
Access Token 管理模块
负责 token 的获取、缓存和自动刷新
"""
import asyncio
import json
import logging
import time
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Optional, Protocol

from .config import WeWorkSettings
from .errors import WeWorkAPIError, WeWorkTransportError
from .transport import ApiRequest, HttpTransport, Transport


logger = logging.getLogger(__name__)

# 提前 5 分钟刷新，避免边界情况
REFRESH_MARGIN = 300


@dataclass
class AccessToken:
    """Token 缓存结构"""
    access_token: str
    expires_at: float  # Unix timestamp


class TokenProvider(Protocol):
    async def get_token(self) -> AccessToken:
        ...


class AccessTokenManager:
    """Access Token 管理器"""

    def __init__(self, settings: WeWorkSettings, transport: Optional[Transport] = None):
        self.settings = settings
        self.cache_file = Path(settings.token_cache_file) if settings.token_cache_file else None
        self._owns_transport = transport is None
        self._transport = transport or HttpTransport(timeout=settings.request_timeout)
        self._token_cache: Optional[AccessToken] = None
        self._lock = asyncio.Lock()
        self._load_cache()

    def _load_cache(self) -> None:
        """从文件加载缓存的 token"""
        if self.cache_file is None or not self.cache_file.exists():
            return

        try:
            with open(self.cache_file, "r") as f:
                data = json.load(f)
            self._token_cache = AccessToken(
                access_token=str(data["access_token"]),
                expires_at=float(data["expires_at"]),
            )
            logger.info("Loaded access token from cache")
        except (OSError, ValueError, TypeError, KeyError) as e:
            logger.warning(f"Failed to load token cache: {e}")
            self._token_cache = None

    def _save_cache(self) -> None:
        """保存 token 到文件"""
        if self.cache_file is None or not self._token_cache:
            return

        try:
            with open(self.cache_file, "w") as f:
                json.dump(asdict(self._token_cache), f)
            logger.info("Saved access token to cache")
        except OSError as e:
            logger.warning(f"Failed to save token cache: {e}")

    def _is_token_valid(self) -> bool:
        if not self._token_cache:
            return False
        return time.time() < (self._token_cache.expires_at - REFRESH_MARGIN)

    async def _fetch_new_token(self) -> AccessToken:
        """从企业微信 API 获取新的 access token"""
        request = ApiRequest(
            method="GET",
            url=f"{self.settings.api_base_url}/gettoken",
            params={
                "corpid": self.settings.corp_id,
                "corpsecret": self.settings.corp_secret,
            },
        )

        logger.info("Fetching new access token from WeWork API")
        data = await self._transport.send(request)

        if not isinstance(data, dict):
            raise WeWorkTransportError("Unexpected gettoken response", url=request.url)

        errcode = data.get("errcode", 0)
        if errcode != 0:
            errmsg = data.get("errmsg", "Unknown error")
            logger.error(f"Failed to fetch access token: {errcode} - {errmsg}")
            raise WeWorkAPIError(errcode, errmsg)

        expires_in = data["expires_in"]  # 通常是 7200 秒
        self._token_cache = AccessToken(
            access_token=data["access_token"],
            expires_at=time.time() + expires_in,
        )
        self._save_cache()

        logger.info(f"Successfully fetched new access token (expires in {expires_in}s)")
        return self._token_cache

    async def get_token(self) -> AccessToken:
        """
        获取有效的 access token
        如果缓存有效则返回缓存，否则获取新 token；并发刷新只会发出一次请求
        """
        if self._is_token_valid():
            logger.debug("Using cached access token")
            return self._token_cache

        async with self._lock:
            # 等锁期间可能已被其他协程刷新
            if self._is_token_valid():
                return self._token_cache
            return await self._fetch_new_token()

    def invalidate_token(self) -> None:
        """使当前 token 失效，强制下次刷新"""
        self._token_cache = None
        if self.cache_file is not None:
            try:
                self.cache_file.unlink(missing_ok=True)
            except OSError as e:
                logger.warning(f"Failed to remove token cache: {e}")
        logger.info("Access token invalidated")

    async def aclose(self) -> None:
        if self._owns_transport:
            await self._transport.aclose()
