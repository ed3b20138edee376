# -*- coding: utf-8 -*-
"""
Conversation Controller
串起 截屏 -> 构建请求 -> 流式发送 -> 累积回答，并维护分步任务的状态

交互模式：
- ask(): 一次性完整回答
- start_task(): 分步任务第一步
- next_step(): 根据新截图给出下一步
- ask_question(): 任务中途提问

同一时间只允许一个交互在进行，进行中的触发会被拒绝
"""

import asyncio
from dataclasses import dataclass, replace
from typing import Callable, Optional
from loguru import logger

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
import config
from diagnostics import EventBus, EventKind, get_event_bus
from errors import AssistantError, TransportError
from llm import prompts
from llm.schemas import ChatRequest, InteractionMode

from .state_machine import Status, StateMachine


@dataclass
class ConversationState:
    """对话状态 (只由 ConversationController 修改，对外只给副本)"""
    mode: Optional[InteractionMode] = None
    step_number: int = 0                  # 0 = 没有进行中的分步任务
    query: str = ""                       # 任务描述，任务期间不变
    pending_question: Optional[str] = None
    accumulated_text: str = ""
    status: Status = Status.IDLE
    error: Optional[str] = None

    @property
    def task_active(self) -> bool:
        return self.step_number > 0


class ConversationController:
    """对话控制器"""

    def __init__(
        self,
        api_key: str = config.LLM_API_KEY,
        capturer=None,
        builder=None,
        transport=None,
        events: Optional[EventBus] = None,
    ):
        self.log = logger.bind(module="Conversation")
        self.api_key = api_key
        self.events = events or get_event_bus()

        # 组件 (默认使用全局单例)
        if capturer is None:
            from vision import get_frame_capturer
            capturer = get_frame_capturer()
        if builder is None:
            from llm.prompt_builder import get_request_builder
            builder = get_request_builder()
        if transport is None:
            from llm.client import get_streaming_transport
            transport = get_streaming_transport()
        self.capturer = capturer
        self.builder = builder
        self.transport = transport

        self.state_machine = StateMachine()
        self.state_machine.on_status_change = self._on_status_change
        self._state = ConversationState()

        # 覆盖分步模式的 system prompt (None = 默认)
        self.step_system_prompt: Optional[str] = None

        # 当前交互
        self._task: Optional[asyncio.Task] = None
        self._interaction_id = 0  # 用于丢弃重置之前的旧结果

        # 回调
        self.on_update: Optional[Callable[[ConversationState], None]] = None
        self.on_chunk: Optional[Callable[[str], None]] = None

    # ==========================================
    # 状态
    # ==========================================

    @property
    def state(self) -> ConversationState:
        """当前状态的副本"""
        return replace(self._state)

    @property
    def is_busy(self) -> bool:
        return self.state_machine.is_busy

    def _on_status_change(self, old: Status, new: Status) -> None:
        self._state.status = new

    def _notify(self) -> None:
        if not self.on_update:
            return
        try:
            self.on_update(self.state)
        except Exception as e:
            self.log.warning(f"状态回调出错: {e}")

    def _emit_chunk(self, chunk: str) -> None:
        if not self.on_chunk:
            return
        try:
            self.on_chunk(chunk)
        except Exception as e:
            self.log.warning(f"文本回调出错: {e}")

    def _can_trigger(self, action: str) -> bool:
        """检查当前是否允许开始新的交互"""
        if self.state_machine.is_busy:
            self.log.info(f"⏳ 正在处理中，忽略 {action}")
            return False
        if self.state_machine.is_errored:
            self.log.info(f"⚠️ 处于错误状态，需要先重置，忽略 {action}")
            return False
        return self.state_machine.can_start

    # ==========================================
    # 触发操作
    # ==========================================

    def ask(self, query: str) -> bool:
        """一次性完整回答"""
        query = (query or "").strip()
        if not query or not self._can_trigger("ask"):
            return False
        if self._state.task_active:
            self.log.info("分步任务进行中，忽略 ask (请先重置)")
            return False

        self._state.query = query
        return self._begin(InteractionMode.STANDALONE)

    def start_task(self, query: str) -> bool:
        """开始分步任务 (第 1 步)"""
        query = (query or "").strip()
        if not query or not self._can_trigger("start_task"):
            return False
        if self._state.task_active:
            self.log.info("分步任务已经开始，忽略 start_task")
            return False

        self._state.query = query
        self._state.step_number = 1
        return self._begin(InteractionMode.FIRST_STEP)

    def next_step(self) -> bool:
        """下一步"""
        if not self._state.task_active or not self._can_trigger("next_step"):
            return False

        self._state.step_number += 1
        return self._begin(InteractionMode.NEXT_STEP)

    def ask_question(self, question: str) -> bool:
        """任务中途提问"""
        question = (question or "").strip()
        if not question or not self._state.task_active or not self._can_trigger("ask_question"):
            return False

        self._state.step_number += 1
        self._state.pending_question = question
        return self._begin(InteractionMode.QUESTION)

    def reset(self) -> None:
        """重置全部状态，丢弃进行中的交互"""
        self._interaction_id += 1
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            self.log.info("🔇 进行中的交互已取消")

        self.state_machine.reset()
        self._state = ConversationState()
        self.log.info("🔄 对话已重置")
        self._notify()

    async def wait(self) -> None:
        """等待当前交互结束"""
        task = self._task
        if task is not None:
            await asyncio.wait([task])

    # ==========================================
    # 交互流程
    # ==========================================

    def _begin(self, mode: InteractionMode) -> bool:
        loop = asyncio.get_running_loop()

        self._interaction_id += 1
        self._state.mode = mode
        self._state.accumulated_text = ""
        self._state.error = None
        self.state_machine.transition_to(Status.CAPTURING_FRAME)

        if mode is InteractionMode.STANDALONE:
            self.log.info(f"❓ 提问: {self._state.query}")
        else:
            self.log.info(f"👣 Step {self._state.step_number} ({mode.value}): {self._state.query}")
        self._notify()

        self._task = loop.create_task(self._run_interaction(self._interaction_id))
        return True

    def _is_stale(self, interaction_id: int) -> bool:
        return interaction_id != self._interaction_id

    def _build_request(self, frame) -> ChatRequest:
        state = self._state
        follow_up = None
        if state.mode is InteractionMode.NEXT_STEP:
            follow_up = prompts.build_next_step_prompt(state.step_number, state.query)
        elif state.mode is InteractionMode.QUESTION:
            follow_up = prompts.build_question_prompt(state.query, state.pending_question or "")
            state.pending_question = None

        return self.builder.build(
            state.mode,
            state.query,
            frame,
            follow_up=follow_up,
            system_prompt=self.step_system_prompt,
        )

    async def _run_interaction(self, interaction_id: int) -> None:
        # 1. 截屏
        try:
            frame = await self.capturer.acquire_frame()
        except Exception as e:
            self._fail(interaction_id, e)
            return

        if self._is_stale(interaction_id):
            return

        # 2. 构建请求
        request = self._build_request(frame)
        self.state_machine.transition_to(Status.AWAITING_RESPONSE)
        self._notify()

        # 3. 流式接收
        try:
            async for chunk in self.transport.send(request, self.api_key):
                if self._is_stale(interaction_id):
                    return
                self._state.accumulated_text += chunk
                self._emit_chunk(chunk)
                self._notify()
        except Exception as e:
            self._fail(interaction_id, e)
            return

        if self._is_stale(interaction_id):
            return

        self.state_machine.transition_to(Status.COMPLETED)
        self.log.info(f"✅ 回答完成 ({len(self._state.accumulated_text)} 字)")
        self._notify()

    def _fail(self, interaction_id: int, error: Exception) -> None:
        if self._is_stale(interaction_id):
            self.log.debug(f"丢弃已重置交互的错误: {error}")
            return

        message = str(error) or type(error).__name__
        self._state.error = message
        self.state_machine.transition_to(Status.ERRORED)
        if isinstance(error, AssistantError):
            self.log.error(f"❌ 交互失败: {message}")
        else:
            self.log.opt(exception=error).error(f"❌ 交互出现未预期的错误: {message}")

        # 传输层已经发布过自己的错误事件
        if not isinstance(error, TransportError):
            self.events.emit(
                EventKind.ERROR,
                "Interaction Failed",
                {
                    "error": message,
                    "mode": self._state.mode.value if self._state.mode else "",
                    "step": self._state.step_number,
                },
            )
        self._notify()
