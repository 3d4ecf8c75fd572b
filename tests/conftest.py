"""
共享测试夹具: 固定 token 的 token provider 与记录请求的 transport
"""
import time

import pytest

from wework_api.client import WeWorkClient
from wework_api.token_manager import AccessToken
from wework_api.transport import ApiRequest


class FakeTokenProvider:
    def __init__(self, token: str = "T"):
        self.token = token
        self.calls = 0

    async def get_token(self) -> AccessToken:
        self.calls += 1
        return AccessToken(access_token=self.token, expires_at=time.time() + 7200)


class RecordingTransport:
    """记录每个请求并返回固定响应"""

    def __init__(self, response=None):
        self.response = response if response is not None else {"errcode": 0, "errmsg": "ok"}
        self.requests = []

    async def send(self, request: ApiRequest):
        self.requests.append(request)
        return self.response

    @property
    def last(self) -> ApiRequest:
        assert self.requests, "no request sent"
        return self.requests[-1]


@pytest.fixture
def token_provider():
    return FakeTokenProvider()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def client(token_provider, transport):
    return WeWorkClient(token_provider, transport)
