"""
WeWork MCP 服务器
实现 MCP 协议，把企业会话/客服/摇一摇/标签接口暴露为工具
"""
import asyncio
import inspect
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from mcp.server import Server
from mcp.types import TextContent, Tool

from .client import WeWorkClient
from .config import WeWorkSettings
from .errors import WeWorkError


logger = logging.getLogger(__name__)


_STRING = {"type": "string"}
_USER_LIST = {"type": "array", "items": {"type": "string"}}
_RECEIVER_TYPE = {
    "type": "string",
    "enum": ["single", "group"],
    "description": "single = 单聊(receiver 为 userid), group = 群聊(receiver 为 chatid)",
}
_PEER = {
    "type": "object",
    "description": "客服消息收发方, 如 {\"type\": \"kf\", \"id\": \"zhangsan\"}; sender和receiver有且只有一个类型为kf",
    "properties": {
        "type": {"type": "string", "enum": ["kf", "userid", "openid"]},
        "id": {"type": "string"},
    },
    "required": ["type", "id"],
}
_TAG_ID = {"type": ["integer", "string"], "description": "标签ID"}


@dataclass
class ToolSpec:
    """工具名 → 客户端方法 的映射"""
    name: str
    method: str
    description: str
    properties: Dict[str, Any] = field(default_factory=dict)
    required: List[str] = field(default_factory=list)

    def to_tool(self) -> Tool:
        return Tool(
            name=self.name,
            description=self.description,
            inputSchema={
                "type": "object",
                "properties": self.properties,
                "required": self.required,
            },
        )


def _send_chat_spec(kind: str, label: str) -> ToolSpec:
    payload = "text" if kind == "text" else "media_id"
    return ToolSpec(
        name=f"wework_send_{kind}_chat",
        method=f"send_{kind}_chat",
        description=f"Send a {label} message into a WeWork chat (single or group).",
        properties={
            "type": _RECEIVER_TYPE,
            "receiver": _STRING,
            "sender": {"type": "string", "description": "Sender userid"},
            payload: _STRING,
        },
        required=["type", "receiver", "sender", payload],
    )


def _send_kf_spec(kind: str, label: str) -> ToolSpec:
    payload = "text" if kind == "text" else "media_id"
    return ToolSpec(
        name=f"wework_send_{kind}_kf",
        method=f"send_{kind}_kf",
        description=f"Send a {label} customer-service message.",
        properties={"sender": _PEER, "receiver": _PEER, payload: _STRING},
        required=["sender", "receiver", payload],
    )


TOOL_SPECS: List[ToolSpec] = [
    ToolSpec(
        name="wework_create_chat",
        method="create_chat",
        description="Create a WeWork group chat. The owner must be one of userlist (3 to 1000 members).",
        properties={
            "chatid": {"type": "string", "description": "Chat id, max 32 chars of 0-9a-zA-Z"},
            "name": _STRING,
            "owner": _STRING,
            "userlist": _USER_LIST,
        },
        required=["chatid", "name", "owner", "userlist"],
    ),
    ToolSpec(
        name="wework_get_chat",
        method="get_chat",
        description="Get a WeWork chat's name, owner and member list.",
        properties={"chatid": _STRING},
        required=["chatid"],
    ),
    ToolSpec(
        name="wework_update_chat",
        method="update_chat",
        description="Rename a chat, change its owner, or add/remove members.",
        properties={
            "chatid": _STRING,
            "op_user": _STRING,
            "name": _STRING,
            "owner": _STRING,
            "add_user_list": _USER_LIST,
            "del_user_list": _USER_LIST,
        },
        required=["chatid", "op_user"],
    ),
    ToolSpec(
        name="wework_quit_chat",
        method="quit_chat",
        description="Make op_user leave a chat.",
        properties={"chatid": _STRING, "op_user": _STRING},
        required=["chatid", "op_user"],
    ),
    ToolSpec(
        name="wework_clear_notify_chat",
        method="clear_notify_chat",
        description="Clear the unread state of a chat for op_user.",
        properties={
            "op_user": _STRING,
            "chat": {
                "type": "object",
                "properties": {"type": _RECEIVER_TYPE, "id": _STRING},
                "required": ["type", "id"],
            },
        },
        required=["op_user", "chat"],
    ),
    _send_chat_spec("text", "text"),
    _send_chat_spec("image", "image"),
    _send_chat_spec("file", "file"),
    _send_chat_spec("voice", "voice"),
    ToolSpec(
        name="wework_set_mute_chat",
        method="set_mute_chat",
        description="Turn new-message do-not-disturb on (status=1) or off (status=0) for members.",
        properties={
            "user_mute_list": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {"userid": _STRING, "status": {"type": "integer", "enum": [0, 1]}},
                    "required": ["userid", "status"],
                },
            },
        },
        required=["user_mute_list"],
    ),
    _send_kf_spec("text", "text"),
    _send_kf_spec("image", "image"),
    _send_kf_spec("file", "file"),
    _send_kf_spec("voice", "voice"),
    ToolSpec(
        name="wework_list_kf",
        method="list_kf",
        description="List customer-service accounts. Omit type to get both internal and external.",
        properties={"type": {"type": "string", "enum": ["internal", "external"]}},
    ),
    ToolSpec(
        name="wework_get_shake_info",
        method="get_shake_info",
        description="Look up the device and user behind a shake-around ticket.",
        properties={"ticket": _STRING},
        required=["ticket"],
    ),
    ToolSpec(
        name="wework_create_tag",
        method="create_tag",
        description="Create a tag.",
        properties={"name": _STRING},
        required=["name"],
    ),
    ToolSpec(
        name="wework_update_tag_name",
        method="update_tag_name",
        description="Rename a tag (max 64 chars).",
        properties={"tag_id": _TAG_ID, "name": _STRING},
        required=["tag_id", "name"],
    ),
    ToolSpec(
        name="wework_delete_tag",
        method="delete_tag",
        description="Delete a tag.",
        properties={"tag_id": _TAG_ID},
        required=["tag_id"],
    ),
    ToolSpec(
        name="wework_list_tags",
        method="list_tags",
        description="List all tags.",
    ),
    ToolSpec(
        name="wework_get_tag_users",
        method="get_tag_users",
        description="List the members of a tag.",
        properties={"tag_id": _TAG_ID},
        required=["tag_id"],
    ),
    ToolSpec(
        name="wework_add_tag_users",
        method="add_tag_users",
        description="Add users to a tag. Invalid userids are reported in invalidlist.",
        properties={"tag_id": _TAG_ID, "user_ids": _USER_LIST},
        required=["tag_id", "user_ids"],
    ),
    ToolSpec(
        name="wework_delete_tag_users",
        method="delete_tag_users",
        description="Remove users from a tag.",
        properties={"tag_id": _TAG_ID, "user_ids": _USER_LIST},
        required=["tag_id", "user_ids"],
    ),
]


class WeWorkMCPServer:
    """WeWork MCP 服务器"""

    def __init__(self, client: Optional[WeWorkClient] = None):
        self.client = client or WeWorkClient.from_settings()
        self.tools = {spec.name: spec for spec in TOOL_SPECS}
        self.server = Server("wework-chat-mcp")
        self._register_handlers()

    def _register_handlers(self):
        """注册 MCP 协议处理器"""

        @self.server.list_tools()
        async def list_tools() -> List[Tool]:
            return [spec.to_tool() for spec in TOOL_SPECS]

        @self.server.call_tool()
        async def call_tool(name: str, arguments: Dict[str, Any]) -> List[TextContent]:
            return await self.dispatch(name, arguments)

    async def dispatch(self, name: str, arguments: Optional[Dict[str, Any]]) -> List[TextContent]:
        """调用工具, 返回企业微信的原始 JSON 响应"""
        spec = self.tools.get(name)
        if spec is None:
            logger.error(f"Unknown tool: {name}")
            return [TextContent(type="text", text=self._format_error_response(name, f"Unknown tool: {name}"))]

        logger.info(f"Tool called: {name}")
        method = getattr(self.client, spec.method)
        arguments = arguments or {}
        try:
            inspect.signature(method).bind(**arguments)
        except TypeError as e:
            logger.error(f"Invalid arguments for {name}: {e}")
            return [TextContent(type="text", text=self._format_error_response(name, f"Invalid arguments: {e}"))]

        try:
            result = await method(**arguments)
        except WeWorkError as e:
            logger.error(f"WeWork call failed: {e}")
            return [TextContent(type="text", text=self._format_error_response(name, str(e)))]

        return [TextContent(type="text", text=json.dumps(result, ensure_ascii=False))]

    def _format_error_response(self, tool_name: str, message: str) -> str:
        return (
            f"❌ Failed to execute {tool_name}\n"
            f"Error Message: {message}\n"
        )

    async def run(self):
        """运行 MCP 服务器"""
        logger.info("Starting WeWork chat MCP Server...")

        from mcp.server.stdio import stdio_server

        try:
            async with stdio_server() as (read_stream, write_stream):
                await self.server.run(
                    read_stream,
                    write_stream,
                    self.server.create_initialization_options(),
                )
        finally:
            await self.client.aclose()


def main():
    """主函数"""
    settings = WeWorkSettings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    try:
        server = WeWorkMCPServer(WeWorkClient.from_settings(settings))
        asyncio.run(server.run())
    except Exception as e:
        logger.error(f"Failed to start server: {e}", exc_info=True)
        raise


if __name__ == "__main__":
    main()
