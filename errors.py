# -*- coding: utf-8 -*-
"""
错误类型
截屏侧 (CaptureError) 和传输侧 (TransportError) 的异常定义
"""

from typing import Optional


class AssistantError(Exception):
    """所有业务错误的基类，str(e) 即给用户看的描述"""


# ==========================================
# 截屏错误
# ==========================================

class CaptureError(AssistantError):
    """截屏失败"""


class PermissionDenied(CaptureError):
    def __init__(self, message: str = "Screen capture permission denied"):
        super().__init__(message)


class NoCapturableContent(CaptureError):
    def __init__(self, message: str = "No shareable content available"):
        super().__init__(message)


class ScreenshotFailed(CaptureError):
    def __init__(self, message: str = "Failed to capture screen"):
        super().__init__(message)


class EncodingFailed(CaptureError):
    def __init__(self, message: str = "Failed to encode screenshot"):
        super().__init__(message)


# ==========================================
# 传输错误
# ==========================================

class TransportError(AssistantError):
    """请求/响应失败"""


class InvalidEndpoint(TransportError):
    def __init__(self, url: str):
        super().__init__(f"Invalid URL: {url}")
        self.url = url


class ApiError(TransportError):
    """服务端返回非 2xx"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NetworkError(TransportError):
    """连接/超时等网络层错误"""

    def __init__(self, cause: BaseException):
        super().__init__(f"Network error: {cause}")
        self.cause = cause


class DecodingError(TransportError):
    """单行流式数据无法解析 (不会中断整个流)"""

    def __init__(self, line: str, reason: str = ""):
        super().__init__(f"Could not decode response: {reason or line[:100]}")
        self.line = line
