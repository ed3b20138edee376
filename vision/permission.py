# -*- coding: utf-8 -*-
"""
屏幕录制权限检测
macOS 需要"屏幕录制"权限，其他平台默认视为已授权
"""

import ctypes
import ctypes.util
import sys
from typing import Optional

from loguru import logger

_CORE_GRAPHICS_PATH = "/System/Library/Frameworks/CoreGraphics.framework/CoreGraphics"
_core_graphics = None


def _load_core_graphics() -> Optional[ctypes.CDLL]:
    """懒加载 CoreGraphics (仅 macOS)"""
    global _core_graphics
    if _core_graphics is None:
        path = ctypes.util.find_library("CoreGraphics") or _CORE_GRAPHICS_PATH
        try:
            lib = ctypes.cdll.LoadLibrary(path)
            lib.CGPreflightScreenCaptureAccess.restype = ctypes.c_bool
            lib.CGRequestScreenCaptureAccess.restype = ctypes.c_bool
        except (OSError, AttributeError) as e:
            # 旧版本 macOS 没有这两个函数，视为无需授权
            logger.warning(f"无法加载 CoreGraphics 权限接口: {e}")
            return None
        _core_graphics = lib
    return _core_graphics


def has_screen_capture_access() -> bool:
    """当前是否有截屏权限"""
    if sys.platform != "darwin":
        return True
    lib = _load_core_graphics()
    if lib is None:
        return True
    return bool(lib.CGPreflightScreenCaptureAccess())


def request_screen_capture_access() -> bool:
    """
    请求截屏权限 (弹出系统授权对话框)

    Returns:
        系统返回的授权结果，调用方仍应再检查一次
    """
    if sys.platform != "darwin":
        return True
    lib = _load_core_graphics()
    if lib is None:
        return True
    logger.info("🔐 请求屏幕录制权限...")
    return bool(lib.CGRequestScreenCaptureAccess())
