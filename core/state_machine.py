# -*- coding: utf-8 -*-
"""
State Machine Module
定义一次交互的状态及状态转换逻辑
"""

from enum import Enum, auto
from typing import Optional, Callable, Dict, List
from loguru import logger


# ==========================================
# States Definition
# ==========================================

class Status(Enum):
    """交互状态"""

    IDLE = auto()               # 空闲等待
    CAPTURING_FRAME = auto()    # 正在截屏
    AWAITING_RESPONSE = auto()  # 等待/接收流式回答
    COMPLETED = auto()          # 回答完成
    ERRORED = auto()            # 出错，需要重置


# 状态描述
STATUS_DESCRIPTIONS = {
    Status.IDLE: "空闲等待",
    Status.CAPTURING_FRAME: "截屏中...",
    Status.AWAITING_RESPONSE: "思考中...",
    Status.COMPLETED: "已完成",
    Status.ERRORED: "出错了",
}


def get_status_description(status: Status) -> str:
    """获取状态描述"""
    return STATUS_DESCRIPTIONS.get(status, "未知状态")


# ==========================================
# State Machine Logic
# ==========================================

class StateMachine:
    """
    交互状态机

    状态转换图：

    IDLE -> CAPTURING_FRAME -> AWAITING_RESPONSE -> COMPLETED
                 |                    |                |
                 └----> ERRORED <-----┘                |
                           |                           |
    IDLE <---- reset ------┘      CAPTURING_FRAME <----┘ (下一步/提问)
    """

    def __init__(self):
        self._status = Status.IDLE

        # 状态变化回调
        self.on_status_change: Optional[Callable[[Status, Status], None]] = None

        # 有效的状态转换
        self._valid_transitions: Dict[Status, List[Status]] = {
            Status.IDLE: [Status.CAPTURING_FRAME],
            Status.CAPTURING_FRAME: [Status.AWAITING_RESPONSE, Status.ERRORED],
            Status.AWAITING_RESPONSE: [Status.COMPLETED, Status.ERRORED],
            Status.COMPLETED: [Status.CAPTURING_FRAME, Status.IDLE],
            Status.ERRORED: [Status.IDLE],
        }

    @property
    def status(self) -> Status:
        """当前状态"""
        return self._status

    def can_transition_to(self, new_status: Status) -> bool:
        """检查是否可以转换到目标状态"""
        return new_status in self._valid_transitions.get(self._status, [])

    def transition_to(self, new_status: Status) -> bool:
        """
        转换到新状态

        Returns:
            是否成功转换 (无效转换会被拒绝并记录警告)
        """
        if not self.can_transition_to(new_status):
            logger.warning(
                f"无效的状态转换: {self._status.name} -> {new_status.name}"
            )
            return False

        old_status = self._status
        self._status = new_status

        logger.debug(
            f"状态转换: {old_status.name} -> {new_status.name} "
            f"({get_status_description(new_status)})"
        )

        if self.on_status_change:
            self.on_status_change(old_status, new_status)

        return True

    def reset(self):
        """重置到初始状态"""
        self._status = Status.IDLE
        logger.debug("状态机已重置")

    # 状态检查
    @property
    def is_errored(self) -> bool:
        return self._status == Status.ERRORED

    @property
    def is_busy(self) -> bool:
        """是否有交互正在进行（截屏中或等待回答）"""
        return self._status in [Status.CAPTURING_FRAME, Status.AWAITING_RESPONSE]

    @property
    def can_start(self) -> bool:
        """是否可以开始新的交互"""
        return self.can_transition_to(Status.CAPTURING_FRAME)
