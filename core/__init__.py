# -*- coding: utf-8 -*-
"""
核心模块

包含:
- ConversationController: 对话控制器 (截屏 -> 请求 -> 流式回答)
- StateMachine: 交互状态机
- DebugRecorder: 调试记录器
"""

from .state_machine import Status, StateMachine
from .conversation import ConversationController, ConversationState
from .debug_recorder import DebugRecorder

__all__ = [
    "Status",
    "StateMachine",
    "ConversationController",
    "ConversationState",
    "DebugRecorder",
]
