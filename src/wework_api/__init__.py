"""
WeWork Chat API - Enterprise WeChat chat / customer-service / tag client
"""

__version__ = "1.0.0"

from .config import WeWorkSettings
from .client import WeWorkClient
from .errors import WeWorkError, WeWorkAPIError, WeWorkTransportError
from .models import ChatMessageType, KfType, ReceiverType
from .token_manager import AccessToken, AccessTokenManager, TokenProvider
from .transport import ApiRequest, HttpTransport, Transport

__all__ = [
    "WeWorkSettings",
    "WeWorkClient",
    "WeWorkError",
    "WeWorkAPIError",
    "WeWorkTransportError",
    "ChatMessageType",
    "KfType",
    "ReceiverType",
    "AccessToken",
    "AccessTokenManager",
    "TokenProvider",
    "ApiRequest",
    "HttpTransport",
    "Transport",
]
