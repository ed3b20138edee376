# -*- coding: utf-8 -*-
"""
请求数据结构
OpenAI chat/completions 格式的消息、内容片段和请求体
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Tuple, Union


class InteractionMode(Enum):
    """交互模式"""

    STANDALONE = "standalone"    # 一次性给出完整步骤
    FIRST_STEP = "first_step"    # 分步任务的第一步
    NEXT_STEP = "next_step"      # 根据新截图给出下一步
    QUESTION = "question"        # 任务中途提问

    @property
    def is_follow_up(self) -> bool:
        return self in (InteractionMode.NEXT_STEP, InteractionMode.QUESTION)


@dataclass(frozen=True)
class TextPart:
    text: str

    def to_payload(self) -> Dict[str, Any]:
        return {"type": "text", "text": self.text}


@dataclass(frozen=True)
class ImagePart:
    base64_data: str = field(repr=False)
    media_type: str = "image/jpeg"

    @property
    def url(self) -> str:
        return f"data:{self.media_type};base64,{self.base64_data}"

    def to_payload(self) -> Dict[str, Any]:
        return {"type": "image_url", "image_url": {"url": self.url}}


ContentPart = Union[TextPart, ImagePart]


@dataclass(frozen=True)
class ChatMessage:
    """
    一条消息

    content 为纯文本，或按顺序排列的内容片段 (文本 + 图片)
    """
    role: str
    content: Union[str, Tuple[ContentPart, ...]]

    @classmethod
    def system(cls, text: str) -> "ChatMessage":
        return cls(role="system", content=text)

    @classmethod
    def user(cls, *parts: ContentPart) -> "ChatMessage":
        return cls(role="user", content=tuple(parts))

    def to_payload(self) -> Dict[str, Any]:
        if isinstance(self.content, str):
            return {"role": self.role, "content": self.content}
        return {
            "role": self.role,
            "content": [part.to_payload() for part in self.content],
        }


@dataclass(frozen=True)
class ChatRequest:
    """一次请求：固定 system + user 两条消息，不带历史"""
    model: str
    messages: Tuple[ChatMessage, ...]
    temperature: float = 0.7
    stream: bool = True

    def to_payload(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [m.to_payload() for m in self.messages],
            "temperature": self.temperature,
            "stream": self.stream,
        }

    @property
    def user_text(self) -> str:
        """user 消息中的文本部分"""
        for message in self.messages:
            if message.role != "user":
                continue
            if isinstance(message.content, str):
                return message.content
            texts: List[str] = [p.text for p in message.content if isinstance(p, TextPart)]
            return "".join(texts)
        return ""

    @property
    def system_text(self) -> str:
        for message in self.messages:
            if message.role == "system" and isinstance(message.content, str):
                return message.content
        return ""
