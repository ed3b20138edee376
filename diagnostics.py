# -*- coding: utf-8 -*-
"""
Diagnostics Module
调试通知通道：截图预览 + 调试事件 (截屏/请求/响应/错误)

两个通道都只用于调试显示，订阅者出错不会影响主流程
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from loguru import logger


class EventKind(Enum):
    """调试事件类型"""

    SCREENSHOT = "screenshot"
    REQUEST = "request"
    RESPONSE = "response"
    ERROR = "error"


@dataclass
class DebugEvent:
    """一条调试记录"""
    kind: EventKind
    message: str
    details: Dict[str, str] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "kind": self.kind.value,
            "message": self.message,
            "details": dict(self.details),
        }


EventListener = Callable[[DebugEvent], None]
FrameListener = Callable[[Any], None]


class EventBus:
    """
    观察者式的通知总线

    - subscribe(): 订阅调试事件
    - subscribe_frames(): 订阅截图预览 (PIL.Image)
    """

    def __init__(self):
        self._listeners: List[EventListener] = []
        self._frame_listeners: List[FrameListener] = []

    def subscribe(self, listener: EventListener) -> Callable[[], None]:
        """订阅调试事件，返回取消订阅函数"""
        self._listeners.append(listener)
        return lambda: self._remove(self._listeners, listener)

    def subscribe_frames(self, listener: FrameListener) -> Callable[[], None]:
        """订阅截图预览，返回取消订阅函数"""
        self._frame_listeners.append(listener)
        return lambda: self._remove(self._frame_listeners, listener)

    @staticmethod
    def _remove(listeners: list, listener) -> None:
        if listener in listeners:
            listeners.remove(listener)

    def emit(
        self,
        kind: EventKind,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> DebugEvent:
        """发布一条调试事件 (details 的值统一转为字符串)"""
        event = DebugEvent(
            kind=kind,
            message=message,
            details={str(k): str(v) for k, v in (details or {}).items()},
        )
        logger.debug(f"[{kind.value}] {message} {event.details}")
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception as e:
                logger.warning(f"调试事件订阅者出错: {e}")
        return event

    def publish_frame(self, image) -> None:
        """发布截图预览"""
        for listener in list(self._frame_listeners):
            try:
                listener(image)
            except Exception as e:
                logger.warning(f"截图预览订阅者出错: {e}")


# 全局单例
_event_bus: Optional[EventBus] = None


def get_event_bus() -> EventBus:
    """获取全局 EventBus 实例"""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus
