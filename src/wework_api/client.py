"""
企业微信 API 客户端

封装企业微信以下接口, 每个方法对应一次远程调用:
1. 企业会话(创建/获取/修改/退出/清除未读/发消息/免打扰)
2. 企业客服消息
3. 摇一摇周边
4. 标签管理

所有方法都返回企业微信的原始 JSON 响应, 包括 errcode != 0 的业务错误,
由调用方自行判断。网络或响应解析失败时抛出 WeWorkTransportError。
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from .config import WeWorkSettings
from .models import ChatMessageType, KfType, ReceiverType
from .token_manager import AccessTokenManager, TokenProvider
from .transport import ApiRequest, HttpTransport, Transport

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "https://qyapi.weixin.qq.com/cgi-bin"


def _plain(value: Any) -> Any:
    """枚举转为其字符串值, 其他值原样返回"""
    return value.value if isinstance(value, Enum) else value


class WeWorkClient:
    """企业微信 API 客户端"""

    def __init__(
        self,
        token_provider: TokenProvider,
        transport: Transport,
        api_base_url: str = DEFAULT_API_BASE_URL,
    ):
        """
        初始化企微客户端

        Args:
            token_provider: 提供 access_token 的对象(需实现 async get_token())
            transport: 发送请求的对象(需实现 async send(ApiRequest))
            api_base_url: API基础URL
        """
        self.token_provider = token_provider
        self.transport = transport
        self.prefix = api_base_url.rstrip("/") + "/"

    @classmethod
    def from_settings(cls, settings: Optional[WeWorkSettings] = None) -> "WeWorkClient":
        """根据配置创建客户端(自带 token 管理器与 httpx 传输)"""
        settings = settings or WeWorkSettings()
        transport = HttpTransport(timeout=settings.request_timeout)
        token_manager = AccessTokenManager(settings, transport=transport)
        return cls(token_manager, transport, api_base_url=settings.api_base_url)

    async def aclose(self) -> None:
        close = getattr(self.transport, "aclose", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> "WeWorkClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ==================== 请求构造 ====================

    async def _build_request(
        self,
        method: str,
        path: str,
        params: Optional[Mapping[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> ApiRequest:
        token = await self.token_provider.get_token()
        query = {"access_token": token.access_token}
        if params:
            query.update({k: _plain(v) for k, v in params.items()})
        return ApiRequest(method=method, url=self.prefix + path, params=query, json=json)

    async def _get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        request = await self._build_request("GET", path, params=params)
        logger.debug(f"GET {path}")
        return await self.transport.send(request)

    async def _post(self, path: str, data: Dict[str, Any]) -> Any:
        request = await self._build_request("POST", path, json=data)
        logger.debug(f"POST {path}")
        return await self.transport.send(request)

    # ==================== 企业会话 ====================

    async def create_chat(self, chatid: str, name: str, owner: str, userlist: List[str]) -> Any:
        """
        创建会话

        Args:
            chatid: 会话id, 最长32个字符, 只允许0-9及a-zA-Z。
                如果值为64bit无符号整型, 要求在[1, 2^63)之间, [2^63, 2^64)为系统分配区间
            name: 会话标题
            owner: 管理员userid, 必须是userlist的成员之一
            userlist: 会话成员列表(userid), 3人或以上, 1000人以下

        Returns:
            API 响应
        """
        data = {
            "chatid": chatid,
            "name": name,
            "owner": owner,
            "userlist": userlist,
        }
        return await self._post("chat/create", data)

    async def get_chat(self, chatid: str) -> Any:
        """获取会话信息"""
        return await self._get("chat/get", {"chatid": chatid})

    async def update_chat(
        self,
        chatid: str,
        op_user: str,
        name: Optional[str] = None,
        owner: Optional[str] = None,
        add_user_list: Optional[List[str]] = None,
        del_user_list: Optional[List[str]] = None,
    ) -> Any:
        """
        修改会话信息

        未提供(或为空)的可选字段不会出现在请求体中。

        Args:
            chatid: 会话id
            op_user: 操作人userid
            name: 新的会话标题
            owner: 新的管理员userid
            add_user_list: 新增成员列表
            del_user_list: 踢出成员列表
        """
        data: Dict[str, Any] = {
            "chatid": chatid,
            "op_user": op_user,
        }
        if name:
            data["name"] = name
        if owner:
            data["owner"] = owner
        if add_user_list:
            data["add_user_list"] = add_user_list
        if del_user_list:
            data["del_user_list"] = del_user_list
        return await self._post("chat/update", data)

    async def quit_chat(self, chatid: str, op_user: str) -> Any:
        """退出会话"""
        return await self._post("chat/quit", {"chatid": chatid, "op_user": op_user})

    async def clear_notify_chat(self, op_user: str, chat: Mapping[str, Any]) -> Any:
        """
        清除会话未读状态

        Args:
            op_user: 会话所有者的userid
            chat: 会话, 如 {"type": "single", "id": "lisi"}
        """
        return await self._post("chat/clearnotify", {"op_user": op_user, "chat": chat})

    async def _send_chat(
        self,
        receiver_type: Union[ReceiverType, str],
        receiver: str,
        sender: str,
        msgtype: ChatMessageType,
        content: Dict[str, Any],
    ) -> Any:
        data = {
            "receiver": {
                "type": _plain(receiver_type),
                "id": receiver,
            },
            "sender": sender,
            "msgtype": msgtype.value,
            msgtype.value: content,
        }
        return await self._post("chat/send", data)

    async def send_text_chat(
        self,
        type: Union[ReceiverType, str],
        receiver: str,
        sender: str,
        text: str,
    ) -> Any:
        """
        发送会话消息(文本)

        Args:
            type: 接收人类型, single(单聊) 或 group(群聊)
            receiver: 接收人(userid 或 chatid)
            sender: 发送人userid
            text: 消息内容
        """
        return await self._send_chat(type, receiver, sender, ChatMessageType.TEXT, {"content": text})

    async def send_image_chat(
        self,
        type: Union[ReceiverType, str],
        receiver: str,
        sender: str,
        media_id: str,
    ) -> Any:
        """发送会话消息(图片), media_id 需先通过上传临时素材获得"""
        return await self._send_chat(type, receiver, sender, ChatMessageType.IMAGE, {"media_id": media_id})

    async def send_file_chat(
        self,
        type: Union[ReceiverType, str],
        receiver: str,
        sender: str,
        media_id: str,
    ) -> Any:
        """发送会话消息(文件)"""
        return await self._send_chat(type, receiver, sender, ChatMessageType.FILE, {"media_id": media_id})

    async def send_voice_chat(
        self,
        type: Union[ReceiverType, str],
        receiver: str,
        sender: str,
        media_id: str,
    ) -> Any:
        """发送会话消息(语音)"""
        return await self._send_chat(type, receiver, sender, ChatMessageType.VOICE, {"media_id": media_id})

    async def set_mute_chat(self, user_mute_list: List[Mapping[str, Any]]) -> Any:
        """
        设置成员新消息免打扰

        Args:
            user_mute_list: 免打扰参数, 如 [{"userid": "zhangsan", "status": 0}], 最多10000个成员
        """
        return await self._post("chat/setmute", {"user_mute_list": user_mute_list})

    # ==================== 企业客服 ====================

    async def _send_kf(
        self,
        sender: Mapping[str, Any],
        receiver: Mapping[str, Any],
        msgtype: ChatMessageType,
        content: Dict[str, Any],
    ) -> Any:
        data = {
            "sender": sender,
            "receiver": receiver,
            "msgtype": msgtype.value,
            msgtype.value: content,
        }
        return await self._post("kf/send", data)

    async def send_text_kf(self, sender: Mapping[str, Any], receiver: Mapping[str, Any], text: str) -> Any:
        """
        发送客服消息(文本)

        sender和receiver有且只有一个类型为kf。当sender为客服时, 表示客服从其它IM工具回复客户,
        并同步消息到客服的微信上。

        Args:
            sender: 发送人, 如 {"type": "kf", "id": "zhangsan"}
            receiver: 接收人, 如 {"type": "userid", "id": "lisi"}
            text: 消息内容
        """
        return await self._send_kf(sender, receiver, ChatMessageType.TEXT, {"content": text})

    async def send_image_kf(self, sender: Mapping[str, Any], receiver: Mapping[str, Any], media_id: str) -> Any:
        """发送客服消息(图片)"""
        return await self._send_kf(sender, receiver, ChatMessageType.IMAGE, {"media_id": media_id})

    async def send_file_kf(self, sender: Mapping[str, Any], receiver: Mapping[str, Any], media_id: str) -> Any:
        """发送客服消息(文件)"""
        return await self._send_kf(sender, receiver, ChatMessageType.FILE, {"media_id": media_id})

    async def send_voice_kf(self, sender: Mapping[str, Any], receiver: Mapping[str, Any], media_id: str) -> Any:
        """发送客服消息(语音)"""
        return await self._send_kf(sender, receiver, ChatMessageType.VOICE, {"media_id": media_id})

    async def list_kf(self, type: Optional[Union[KfType, str]] = None) -> Any:
        """
        获取客服列表

        Args:
            type: internal 只获取内部客服; external 只获取外部客服; 不填时同时返回两者
        """
        params = {"type": type} if type else None
        return await self._get("kf/list", params)

    # ==================== 摇一摇周边 ====================

    async def get_shake_info(self, ticket: str) -> Any:
        """获取摇一摇设备及用户信息"""
        return await self._post("shakearound/getshakeinfo", {"ticket": ticket})

    # ==================== 标签管理 ====================

    async def create_tag(self, name: str) -> Any:
        """
        创建标签

        Returns:
            如 {"errcode": 0, "errmsg": "created", "tagid": "1"}
        """
        return await self._post("tag/create", {"tagname": name})

    async def update_tag_name(self, tag_id: Union[int, str], name: str) -> Any:
        """更新标签名字(最长64个字符)"""
        return await self._post("tag/update", {"tagid": tag_id, "tagname": name})

    async def delete_tag(self, tag_id: Union[int, str]) -> Any:
        """删除标签"""
        return await self._get("tag/delete", {"tagid": tag_id})

    async def list_tags(self) -> Any:
        """获取标签列表"""
        return await self._get("tag/list")

    async def get_tag_users(self, tag_id: Union[int, str]) -> Any:
        """获取标签成员"""
        return await self._get("tag/get", {"tagid": tag_id})

    async def add_tag_users(self, tag_id: Union[int, str], user_ids: List[str]) -> Any:
        """
        增加标签成员

        部分userid非法时返回 errcode 0 且带 invalidlist;
        全部非法时返回 {"errcode": 40031, "errmsg": "all list invalid"}。
        两种情况都作为正常结果返回。
        """
        return await self._post("tag/addtagusers", {"tagid": tag_id, "userlist": user_ids})

    async def delete_tag_users(self, tag_id: Union[int, str], user_ids: List[str]) -> Any:
        """删除标签成员, 返回格式同 add_tag_users"""
        return await self._post("tag/deltagusers", {"tagid": tag_id, "userlist": user_ids})
