# -*- coding: utf-8 -*-
"""
Frame Capturer
截取主显示器的一帧画面，压缩为 JPEG 并 base64 编码，供多模态请求使用

每次调用都会新开一个截屏会话，只取第一帧，取到后立即关闭
"""

import asyncio
import base64
import io
import sys
import os
from typing import Callable, Optional
from dataclasses import dataclass, field
from PIL import Image
import mss
from loguru import logger

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
import config
from diagnostics import EventBus, EventKind, get_event_bus
from errors import (
    CaptureError,
    EncodingFailed,
    NoCapturableContent,
    PermissionDenied,
    ScreenshotFailed,
)
from . import permission


# ==========================================
# Encoded Frame
# ==========================================

@dataclass(frozen=True)
class EncodedFrame:
    """编码后的截图 (只读，每次请求用完即弃)"""
    data: bytes                          # JPEG 字节
    base64_data: str = field(repr=False)  # base64 编码
    width: int = 0
    height: int = 0
    quality: int = 0                     # 实际使用的 JPEG 质量
    media_type: str = "image/jpeg"

    @classmethod
    def from_bytes(cls, data: bytes, width: int, height: int, quality: int,
                   media_type: str = "image/jpeg") -> "EncodedFrame":
        return cls(
            data=data,
            base64_data=base64.b64encode(data).decode("utf-8"),
            width=width,
            height=height,
            quality=quality,
            media_type=media_type,
        )

    @property
    def data_url(self) -> str:
        return f"data:{self.media_type};base64,{self.base64_data}"


# ==========================================
# Capture Session
# ==========================================

class CaptureSession:
    """
    单次截屏会话

    在工作线程中打开 mss 并抓帧，结果通过 future 交回事件循环。
    只有第一帧会被接收 (一次性闩锁)，之后的帧和关闭后的帧都会被丢弃。
    """

    def __init__(self, session_factory: Callable, loop: asyncio.AbstractEventLoop):
        self._session_factory = session_factory
        self._loop = loop
        self._future: asyncio.Future = loop.create_future()
        self._latched = False
        self._closed = False
        self._worker: Optional[asyncio.Future] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def deliver(self, image: Image.Image) -> bool:
        """交付一帧，返回是否被接收"""
        if self._latched or self._closed:
            logger.debug("忽略多余的截屏帧")
            return False
        self._latched = True
        self._future.set_result(image)
        return True

    def fail(self, error: CaptureError) -> None:
        if self._latched or self._closed:
            return
        self._latched = True
        self._future.set_exception(error)

    def _post(self, callback, arg) -> None:
        """从工作线程把结果投递回事件循环"""
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(callback, arg)

    def _run(self) -> None:
        """工作线程: 枚举显示器并抓取第一帧"""
        try:
            with self._session_factory() as sct:
                try:
                    # monitors[0] 是所有屏幕的合并区域，真实显示器从 1 开始
                    displays = list(sct.monitors[1:])
                except Exception as e:
                    logger.error(f"枚举显示器失败: {e}")
                    self._post(self.fail, NoCapturableContent())
                    return

                if not displays:
                    self._post(self.fail, NoCapturableContent())
                    return

                shot = sct.grab(displays[0])
                image = Image.frombytes("RGB", shot.size, shot.bgra, "raw", "BGRX")
        except Exception as e:
            logger.error(f"截屏失败: {e}")
            self._post(self.fail, ScreenshotFailed(f"Failed to capture screen: {e}"))
            return

        self._post(self.deliver, image)

    async def first_frame(self) -> Image.Image:
        """启动会话并等待第一帧"""
        self._worker = self._loop.run_in_executor(None, self._run)
        return await self._future

    def close(self) -> None:
        """关闭会话，之后到达的帧一律丢弃"""
        self._closed = True
        if not self._future.done():
            self._future.cancel()


# ==========================================
# Frame Capturer
# ==========================================

class FrameCapturer:
    """屏幕截取工具"""

    def __init__(
        self,
        max_size: Optional[int] = None,   # 最大边长，None = 不缩放
        quality: int = 70,                # JPEG 起始质量
        min_quality: int = 30,            # 最低质量
        quality_step: int = 10,
        session_factory: Callable = mss.mss,
        has_access: Callable[[], bool] = permission.has_screen_capture_access,
        request_access: Callable[[], bool] = permission.request_screen_capture_access,
        events: Optional[EventBus] = None,
    ):
        self.max_size = max_size
        self.quality = quality
        self.min_quality = min_quality
        self.quality_step = quality_step
        self.session_factory = session_factory
        self.has_access = has_access
        self.request_access = request_access
        self.events = events or get_event_bus()

        # 由界面层设置：截屏前隐藏自己的窗口，截完恢复
        self.hide_own_windows: Optional[Callable[[], None]] = None
        self.restore_own_windows: Optional[Callable[[], None]] = None

    def ensure_permission(self) -> None:
        """检查截屏权限，没有就请求一次并复查，仍没有则抛 PermissionDenied"""
        if self.has_access():
            return
        self.request_access()
        if not self.has_access():
            logger.error("❌ 没有屏幕录制权限")
            raise PermissionDenied()

    def _resize_image(self, img: Image.Image) -> Image.Image:
        """等比缩放图片到最大边长"""
        if not self.max_size:
            return img

        width, height = img.size

        if max(width, height) <= self.max_size:
            return img

        if width > height:
            new_width = self.max_size
            new_height = int(height * (self.max_size / width))
        else:
            new_height = self.max_size
            new_width = int(width * (self.max_size / height))

        return img.resize((new_width, new_height), Image.Resampling.LANCZOS)

    def quality_levels(self):
        """从起始质量逐级降低到最低质量"""
        quality = self.quality
        while quality >= self.min_quality:
            yield quality
            quality -= self.quality_step

    def encode(self, img: Image.Image) -> EncodedFrame:
        """压缩为 JPEG，失败则逐级降低质量重试"""
        img = self._resize_image(img)

        # JPEG 不支持透明通道
        if img.mode != "RGB":
            img = img.convert("RGB")

        for quality in self.quality_levels():
            buffer = io.BytesIO()
            try:
                img.save(buffer, format="JPEG", quality=quality)
            except (OSError, ValueError) as e:
                logger.debug(f"JPEG 编码失败 (quality={quality}): {e}")
                continue
            return EncodedFrame.from_bytes(
                buffer.getvalue(),
                width=img.size[0],
                height=img.size[1],
                quality=quality,
            )

        raise EncodingFailed()

    async def acquire_frame(self) -> EncodedFrame:
        """
        截取主显示器的一帧并编码

        Raises:
            PermissionDenied / NoCapturableContent / ScreenshotFailed / EncodingFailed
        """
        self.ensure_permission()

        loop = asyncio.get_running_loop()
        session = CaptureSession(self.session_factory, loop)

        if self.hide_own_windows:
            self.hide_own_windows()
        try:
            image = await session.first_frame()
        finally:
            session.close()
            if self.restore_own_windows:
                self.restore_own_windows()

        self.events.publish_frame(image)

        frame = await loop.run_in_executor(None, self.encode, image)

        logger.info(f"📸 截图完成: {frame.width}x{frame.height}, {len(frame.base64_data)} chars (q={frame.quality})")
        self.events.emit(
            EventKind.SCREENSHOT,
            "Screenshot Captured",
            {
                "base64_length": len(frame.base64_data),
                "size": f"{frame.width}x{frame.height}",
                "quality": frame.quality,
            },
        )
        return frame


# 全局单例
_frame_capturer: Optional[FrameCapturer] = None

def get_frame_capturer() -> FrameCapturer:
    global _frame_capturer
    if _frame_capturer is None:
        _frame_capturer = FrameCapturer(
            max_size=getattr(config, 'SCREENSHOT_MAX_SIZE', None),
            quality=getattr(config, 'SCREENSHOT_QUALITY', 70),
            min_quality=getattr(config, 'SCREENSHOT_MIN_QUALITY', 30),
            quality_step=getattr(config, 'SCREENSHOT_QUALITY_STEP', 10),
        )
    return _frame_capturer


if __name__ == "__main__":
    async def test():
        print("Frame Capturer Test")
        frame = await get_frame_capturer().acquire_frame()
        print(f"Result: {frame.width}x{frame.height}, {len(frame.data)} bytes, q={frame.quality}")
    asyncio.run(test())
