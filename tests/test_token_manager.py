"""
AccessTokenManager 单元测试

测试:
- 获取/缓存/提前刷新
- 文件缓存读写
- errcode != 0 时抛出 WeWorkAPIError
- 并发刷新只请求一次
"""

import asyncio
import json
import time

import pytest

from wework_api.config import WeWorkSettings
from wework_api.errors import WeWorkAPIError, WeWorkTransportError
from wework_api.token_manager import AccessToken, AccessTokenManager


class GetTokenTransport:
    """按顺序返回 gettoken 响应"""

    def __init__(self, *responses, delay: float = 0):
        self.responses = list(responses)
        self.delay = delay
        self.requests = []

    async def send(self, request):
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        return self.responses.pop(0)


def ok(token: str, expires_in: int = 7200) -> dict:
    return {"errcode": 0, "errmsg": "ok", "access_token": token, "expires_in": expires_in}


@pytest.fixture
def settings(tmp_path):
    return WeWorkSettings(
        corp_id="ww123",
        corp_secret="secret",
        token_cache_file=str(tmp_path / ".wework_token_cache"),
    )


class TestFetch:

    @pytest.mark.asyncio
    async def test_fetch_request_shape(self, settings):
        transport = GetTokenTransport(ok("ACCESS"))
        manager = AccessTokenManager(settings, transport=transport)

        token = await manager.get_token()

        assert token.access_token == "ACCESS"
        req = transport.requests[0]
        assert req.method == "GET"
        assert req.url == "https://qyapi.weixin.qq.com/cgi-bin/gettoken"
        assert dict(req.params) == {"corpid": "ww123", "corpsecret": "secret"}

    @pytest.mark.asyncio
    async def test_cached_token_reused(self, settings):
        transport = GetTokenTransport(ok("A"), ok("B"))
        manager = AccessTokenManager(settings, transport=transport)

        first = await manager.get_token()
        second = await manager.get_token()

        assert first.access_token == second.access_token == "A"
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_refresh_inside_margin(self, settings):
        # 剩余有效期小于 300 秒视为过期
        transport = GetTokenTransport(ok("A", expires_in=200), ok("B"))
        manager = AccessTokenManager(settings, transport=transport)

        assert (await manager.get_token()).access_token == "A"
        assert (await manager.get_token()).access_token == "B"
        assert len(transport.requests) == 2

    @pytest.mark.asyncio
    async def test_invalidate_forces_refresh(self, settings):
        transport = GetTokenTransport(ok("A"), ok("B"))
        manager = AccessTokenManager(settings, transport=transport)

        await manager.get_token()
        manager.invalidate_token()

        assert (await manager.get_token()).access_token == "B"

    @pytest.mark.asyncio
    async def test_api_error(self, settings):
        transport = GetTokenTransport({"errcode": 40013, "errmsg": "invalid corpid"})
        manager = AccessTokenManager(settings, transport=transport)

        with pytest.raises(WeWorkAPIError) as exc_info:
            await manager.get_token()

        assert exc_info.value.errcode == 40013
        assert exc_info.value.errmsg == "invalid corpid"

    @pytest.mark.asyncio
    async def test_non_object_response(self, settings):
        manager = AccessTokenManager(settings, transport=GetTokenTransport(["unexpected"]))

        with pytest.raises(WeWorkTransportError):
            await manager.get_token()

    @pytest.mark.asyncio
    async def test_concurrent_refresh_single_request(self, settings):
        transport = GetTokenTransport(ok("A"), ok("B"), delay=0.01)
        manager = AccessTokenManager(settings, transport=transport)

        tokens = await asyncio.gather(*[manager.get_token() for _ in range(10)])

        assert {t.access_token for t in tokens} == {"A"}
        assert len(transport.requests) == 1


class TestFileCache:

    @pytest.mark.asyncio
    async def test_token_saved_to_file(self, settings, tmp_path):
        manager = AccessTokenManager(settings, transport=GetTokenTransport(ok("A")))

        await manager.get_token()

        data = json.loads((tmp_path / ".wework_token_cache").read_text())
        assert data["access_token"] == "A"
        assert data["expires_at"] > time.time()

    @pytest.mark.asyncio
    async def test_token_loaded_from_file(self, settings, tmp_path):
        cache = tmp_path / ".wework_token_cache"
        cache.write_text(json.dumps({"access_token": "CACHED", "expires_at": time.time() + 3600}))
        transport = GetTokenTransport()
        manager = AccessTokenManager(settings, transport=transport)

        token = await manager.get_token()

        assert token == AccessToken(access_token="CACHED", expires_at=token.expires_at)
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_corrupt_cache_ignored(self, settings, tmp_path):
        (tmp_path / ".wework_token_cache").write_text("{not json")
        manager = AccessTokenManager(settings, transport=GetTokenTransport(ok("FRESH")))

        assert (await manager.get_token()).access_token == "FRESH"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"access_token": "x", "expires_at": "abc"},
            {"access_token": "x", "expires_at": None},
            {"access_token": "x"},
        ],
    )
    async def test_malformed_cache_fields_ignored(self, settings, tmp_path, payload):
        """测试字段类型错误的缓存文件被忽略并重新获取"""
        (tmp_path / ".wework_token_cache").write_text(json.dumps(payload))
        transport = GetTokenTransport(ok("FRESH"))
        manager = AccessTokenManager(settings, transport=transport)

        assert (await manager.get_token()).access_token == "FRESH"
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_numeric_string_expiry_accepted(self, settings, tmp_path):
        expires_at = time.time() + 3600
        (tmp_path / ".wework_token_cache").write_text(
            json.dumps({"access_token": "CACHED", "expires_at": str(expires_at)})
        )
        transport = GetTokenTransport()
        manager = AccessTokenManager(settings, transport=transport)

        token = await manager.get_token()

        assert token.access_token == "CACHED"
        assert token.expires_at == pytest.approx(expires_at)
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_invalidate_removes_cache_file(self, settings, tmp_path):
        cache = tmp_path / ".wework_token_cache"
        manager = AccessTokenManager(settings, transport=GetTokenTransport(ok("A"), ok("B")))
        await manager.get_token()
        assert cache.exists()

        manager.invalidate_token()

        assert not cache.exists()
        # 重启后不会读到已失效的 token
        restarted = AccessTokenManager(settings, transport=GetTokenTransport(ok("C")))
        assert (await restarted.get_token()).access_token == "C"

    def test_invalidate_when_cache_file_missing(self, settings):
        manager = AccessTokenManager(settings, transport=GetTokenTransport())
        manager.invalidate_token()
        assert manager._token_cache is None

    @pytest.mark.asyncio
    async def test_save_failure_logged_and_token_returned(self, tmp_path, caplog):
        """缓存路径不可写时仍返回新 token"""
        cache_dir = tmp_path / "cache_is_a_dir"
        cache_dir.mkdir()
        settings = WeWorkSettings(corp_id="ww123", corp_secret="secret", token_cache_file=str(cache_dir))
        manager = AccessTokenManager(settings, transport=GetTokenTransport(ok("A")))

        with caplog.at_level("WARNING", logger="wework_api.token_manager"):
            token = await manager.get_token()

        assert token.access_token == "A"
        assert "Failed to save token cache" in caplog.text

    @pytest.mark.asyncio
    async def test_file_cache_disabled(self, tmp_path):
        settings = WeWorkSettings(corp_id="ww123", corp_secret="secret", token_cache_file="")
        manager = AccessTokenManager(settings, transport=GetTokenTransport(ok("A")))

        await manager.get_token()

        assert manager.cache_file is None
        assert list(tmp_path.iterdir()) == []
