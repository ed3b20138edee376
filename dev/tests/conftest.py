# -*- coding: utf-8 -*-
"""
测试公共夹具
"""

import asyncio
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__)))))

from diagnostics import EventBus
from vision.core import EncodedFrame


@pytest.fixture
def events():
    """每个测试独立的 EventBus，收集所有事件"""
    bus = EventBus()
    bus.recorded = []
    bus.subscribe(bus.recorded.append)
    return bus


@pytest.fixture
def frame():
    return EncodedFrame.from_bytes(b"\xff\xd8fake-jpeg\xff\xd9", width=4, height=3, quality=70)


class FakeCapturer:
    """假截屏器：可阻塞、可抛错"""

    def __init__(self, error=None, gate=None):
        self.error = error
        self.gate = gate
        self.calls = 0

    async def acquire_frame(self):
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return EncodedFrame.from_bytes(b"\xff\xd8step\xff\xd9", width=2, height=2, quality=70)


class FakeTransport:
    """假传输层：按顺序产出预设的文本片段"""

    def __init__(self, responses=None, error=None, gate=None):
        # responses: 每次调用对应一组 chunks
        self.responses = list(responses or [])
        self.error = error
        self.gate = gate
        self.requests = []

    async def send(self, request, api_key):
        self.requests.append((request, api_key))
        chunks = self.responses.pop(0) if self.responses else []
        if self.gate is not None:
            await self.gate.wait()
        for chunk in chunks:
            yield chunk
        if self.error is not None:
            raise self.error


async def wait_for_status(controller, status, attempts: int = 200):
    """让出事件循环直到控制器进入指定状态"""
    for _ in range(attempts):
        if controller.state.status is status:
            return
        await asyncio.sleep(0)
    raise AssertionError(f"status never reached {status}, got {controller.state.status}")
