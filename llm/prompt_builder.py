# -*- coding: utf-8 -*-
"""
Chat Request Builder
根据交互模式构建 system + user 两条消息的多模态请求

结构：
- System: 按模式选择 (完整回答 / 单步)，调用方可覆盖
- User: 模式对应的文本 + 截图
"""

from typing import Optional
from loguru import logger
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
import config

from .schemas import ChatMessage, ChatRequest, ImagePart, InteractionMode, TextPart
from . import prompts


class ChatRequestBuilder:
    """
    请求构建器

    纯函数式：同样的输入总是得到同样的请求，没有错误分支
    """

    def __init__(
        self,
        model: str = config.LLM_MODEL,
        temperature: float = config.LLM_TEMPERATURE,
    ):
        self.model = model
        self.temperature = temperature

    def build_system_prompt(self, mode: InteractionMode, override: Optional[str] = None) -> str:
        if mode is InteractionMode.STANDALONE:
            return prompts.get_standalone_system_prompt()
        # 单步模式允许调用方覆盖
        if override is not None:
            return override
        return prompts.get_step_system_prompt()

    def build_user_text(
        self,
        mode: InteractionMode,
        query: str,
        follow_up: Optional[str] = None,
    ) -> str:
        if mode is InteractionMode.STANDALONE:
            return prompts.STANDALONE_USER_TEMPLATE.format(query=query)
        if mode is InteractionMode.FIRST_STEP:
            return prompts.FIRST_STEP_USER_TEMPLATE.format(query=query)
        return prompts.FOLLOW_UP_USER_TEMPLATE.format(
            text=follow_up if follow_up is not None else query
        )

    def build(
        self,
        mode: InteractionMode,
        query: str,
        frame,
        follow_up: Optional[str] = None,
        system_prompt: Optional[str] = None,
    ) -> ChatRequest:
        """
        构建请求

        Args:
            mode: 交互模式
            query: 用户原始任务描述
            frame: EncodedFrame 截图
            follow_up: 下一步/提问模式下的追问文本
            system_prompt: 覆盖默认的单步 system prompt (完整回答模式下忽略)

        Returns:
            ChatRequest (system + user 两条消息)
        """
        system_text = self.build_system_prompt(mode, system_prompt)
        user_text = self.build_user_text(mode, query, follow_up)

        logger.debug(f"🔧 构建请求: mode={mode.value}, user_text={user_text[:80]}...")

        return ChatRequest(
            model=self.model,
            messages=(
                ChatMessage.system(system_text),
                ChatMessage.user(
                    TextPart(user_text),
                    ImagePart(base64_data=frame.base64_data, media_type=frame.media_type),
                ),
            ),
            temperature=self.temperature,
            stream=True,
        )


# 全局单例
_request_builder: Optional[ChatRequestBuilder] = None


def get_request_builder() -> ChatRequestBuilder:
    """获取全局 ChatRequestBuilder 实例"""
    global _request_builder
    if _request_builder is None:
        _request_builder = ChatRequestBuilder()
    return _request_builder
