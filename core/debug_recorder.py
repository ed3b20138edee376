# -*- coding: utf-8 -*-
"""
调试记录器
把调试事件写成 JSON Lines，把截图预览存成 JPEG，方便事后排查
"""

import json
import os
from datetime import datetime
from typing import Callable, List, Optional
from loguru import logger

import sys
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
import config
from diagnostics import DebugEvent, EventBus


class DebugRecorder:
    """订阅 EventBus，把调试信息落盘"""

    def __init__(self, events: EventBus, output_dir: Optional[str] = None):
        self.events = events
        self.output_dir = output_dir or config.DEBUG_DIR
        self._unsubscribers: List[Callable[[], None]] = []
        self._session = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")

    @property
    def events_path(self) -> str:
        return os.path.join(self.output_dir, f"events_{self._session}.jsonl")

    def start(self) -> None:
        if self._unsubscribers:
            return
        os.makedirs(self.output_dir, exist_ok=True)
        self._unsubscribers = [
            self.events.subscribe(self.record_event),
            self.events.subscribe_frames(self.record_frame),
        ]
        logger.info(f"📝 调试记录已启用: {self.output_dir}")

    def stop(self) -> None:
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []

    def record_event(self, event: DebugEvent) -> None:
        with open(self.events_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(event.to_dict(), ensure_ascii=False) + "\n")

    def record_frame(self, image) -> Optional[str]:
        """保存截图，返回文件路径"""
        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S_%f")
        path = os.path.join(self.output_dir, f"screenshot_{timestamp}.jpg")
        try:
            if image.mode != "RGB":
                image = image.convert("RGB")
            image.save(path, format="JPEG", quality=80)
        except (OSError, ValueError) as e:
            logger.error(f"❌ 保存截图失败: {e}")
            return None
        logger.debug(f"截图已保存: {path}")
        return path
