"""
HTTP 传输层

负责:
1. 请求描述(ApiRequest)的构造与展示
2. 通过 httpx 发送请求并解析 JSON 响应
3. 将网络/HTTP/解析失败统一转换为 WeWorkTransportError

业务错误(errcode != 0)不在这一层处理, 原样返回给调用方。
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional, Protocol

import httpx

from .errors import WeWorkTransportError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApiRequest:
    """一次 API 调用的请求描述, 构造后不可修改"""
    method: str
    url: str
    params: Mapping[str, Any] = field(default_factory=dict)
    json: Optional[Any] = None

    def __post_init__(self):
        object.__setattr__(self, "params", MappingProxyType(dict(self.params)))

    @property
    def full_url(self) -> str:
        """带查询参数的完整URL"""
        return str(httpx.URL(self.url, params=dict(self.params)))


class Transport(Protocol):
    async def send(self, request: ApiRequest) -> Any:
        ...


class HttpTransport:
    """基于 httpx.AsyncClient 的传输实现"""

    def __init__(self, timeout: float = 30.0, client: Optional[httpx.AsyncClient] = None):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def send(self, request: ApiRequest) -> Any:
        """
        发送请求并返回解析后的 JSON

        Raises:
            WeWorkTransportError: 网络错误、非2xx状态码或响应不是合法JSON
        """
        kwargs: dict = {"params": dict(request.params)}
        if request.method.upper() != "GET" and request.json is not None:
            kwargs["json"] = request.json

        try:
            response = await self._client.request(request.method, request.url, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"HTTP {e.response.status_code} from {request.url}")
            raise WeWorkTransportError(
                f"HTTP {e.response.status_code} from {request.url}",
                url=request.url,
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Request to {request.url} failed: {e}")
            raise WeWorkTransportError(
                f"Request to {request.url} failed: {e}", url=request.url
            ) from e

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Non-JSON response from {request.url}")
            raise WeWorkTransportError(
                f"Invalid JSON response from {request.url}",
                url=request.url,
                status_code=response.status_code,
            ) from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpTransport":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
