"""
异常定义

- WeWorkTransportError: 网络/HTTP/响应解析失败
- WeWorkAPIError: 企业微信返回非0 errcode（仅在获取 access_token 时抛出）
"""
from typing import Optional


class WeWorkError(Exception):
    """企业微信客户端异常基类"""


class WeWorkTransportError(WeWorkError):
    """传输层错误（网络异常、非2xx响应、非JSON响应）"""

    def __init__(self, message: str, url: str = "", status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class WeWorkAPIError(WeWorkError):
    """企业微信 API 错误"""

    def __init__(self, errcode: int, errmsg: str):
        self.errcode = errcode
        self.errmsg = errmsg
        super().__init__(f"WeWork API Error {errcode}: {errmsg}")
