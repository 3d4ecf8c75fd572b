"""
请求参数中用到的枚举
"""
from enum import Enum


class ReceiverType(str, Enum):
    """会话消息接收方类型"""
    SINGLE = "single"  # 单聊
    GROUP = "group"  # 群聊


class ChatMessageType(str, Enum):
    """会话/客服消息类型"""
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    VOICE = "voice"


class KfType(str, Enum):
    """客服类型"""
    INTERNAL = "internal"
    EXTERNAL = "external"
