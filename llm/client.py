# -*- coding: utf-8 -*-
"""
Streaming Transport Module
OpenAI 格式 API 客户端，发送多模态请求并流式返回文本增量
"""

import httpx
import json
from typing import AsyncGenerator, Any, Dict, Optional
from loguru import logger
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
import config
from diagnostics import EventBus, EventKind, get_event_bus
from errors import ApiError, InvalidEndpoint, NetworkError

from .schemas import ChatRequest
from .stream_parser import SSEStreamParser


def extract_error_message(body: bytes) -> Optional[str]:
    """从错误响应体中取出 error.message"""
    try:
        data = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        return None
    if not isinstance(data, dict):
        return None
    error = data.get("error")
    if not isinstance(error, dict):
        return None
    message = error.get("message")
    # 空 message 视为没有，交给调用方用状态码兜底
    if isinstance(message, str) and message.strip():
        return message
    return None


def describe_payload(payload: Dict[str, Any], body_size: int) -> Dict[str, Any]:
    """请求体的调试摘要 (消息角色、内容类型、图片大小)"""
    details: Dict[str, Any] = {"body_size": f"{body_size} bytes"}
    messages = payload.get("messages", [])
    details["message_count"] = len(messages)

    for index, message in enumerate(messages):
        details[f"message_{index}_role"] = message.get("role", "unknown")
        content = message.get("content")
        if isinstance(content, str):
            details[f"message_{index}_content"] = content[:50] + "..."
            continue
        for content_index, item in enumerate(content or []):
            key = f"message_{index}_content_{content_index}"
            details[f"{key}_type"] = item.get("type", "unknown")
            if item.get("type") != "image_url":
                continue
            url = item.get("image_url", {}).get("url", "")
            prefix, _, data = url.partition(";base64,")
            if not data:
                details[f"{key}_image_url"] = url
                continue
            details[f"{key}_image_size"] = f"{len(data)} chars"
            if len(data) % 4 != 0:
                details[f"{key}_image_warning"] = "Base64 data length is not a multiple of 4"
    return details


class StreamingTransport:
    """流式请求客户端 (每次调用只发一次 HTTP 请求，不重试)"""

    def __init__(
        self,
        api_base: str = config.LLM_API_BASE,
        timeout: Optional[float] = config.LLM_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        events: Optional[EventBus] = None,
    ):
        self.api_base = api_base.rstrip('/')
        self.timeout = timeout
        self.transport = transport
        self.events = events or get_event_bus()

    @property
    def url(self) -> str:
        return f"{self.api_base}/chat/completions"

    def _validate_url(self) -> httpx.URL:
        try:
            url = httpx.URL(self.url)
        except (httpx.InvalidURL, TypeError) as e:
            raise InvalidEndpoint(self.url) from e
        if url.scheme not in ("http", "https") or not url.host:
            raise InvalidEndpoint(self.url)
        return url

    async def send(
        self,
        request: ChatRequest,
        api_key: str,
    ) -> AsyncGenerator[str, None]:
        """
        发送请求并流式产出文本增量

        Args:
            request: 构建好的请求
            api_key: Bearer token

        Yields:
            按到达顺序的文本片段

        Raises:
            InvalidEndpoint / ApiError / NetworkError
        """
        url = self._validate_url()

        payload = request.to_payload()
        body = json.dumps(payload).encode("utf-8")
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }

        details = describe_payload(payload, len(body))
        details["url"] = str(url)
        details["headers"] = ", ".join(headers)
        logger.debug(f"📤 请求大小: {len(body)} bytes")
        self.events.emit(EventKind.REQUEST, "API Request", details)

        parser = SSEStreamParser()

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                async with client.stream(
                    "POST",
                    url,
                    content=body,
                    headers=headers
                ) as response:
                    logger.debug(f"📥 响应状态码: {response.status_code}")
                    response_details: Dict[str, Any] = {
                        "status_code": response.status_code,
                        "headers": ", ".join(response.headers.keys()),
                    }

                    if not response.is_success:
                        error_body = await response.aread()
                        message = extract_error_message(error_body)
                        if message is None:
                            message = f"HTTP Error: {response.status_code}"
                        logger.error(f"❌ API 错误: {response.status_code} - {message}")
                        response_details["error"] = message
                        response_details["data_size"] = f"{len(error_body)} bytes"
                        self.events.emit(EventKind.ERROR, "API Error Response", response_details)
                        raise ApiError(message, status_code=response.status_code)

                    async for line in response.aiter_lines():
                        content = parser.parse_line(line)
                        if content is not None:
                            yield content
        except httpx.HTTPError as e:
            logger.error(f"❌ 网络错误: {e}")
            self.events.emit(EventKind.ERROR, "Network Error", {"error": str(e) or type(e).__name__})
            raise NetworkError(e) from e

        response_details["lines_count"] = parser.lines_count
        response_details["chunks_count"] = parser.chunks_count
        response_details["malformed_lines"] = parser.malformed_count
        for i, line in enumerate(parser.sample_lines):
            response_details[f"line_{i}"] = line
        self.events.emit(EventKind.RESPONSE, "API Response", response_details)

        if parser.chunks_count == 0:
            # 空响应不算失败，只记录下来
            logger.warning("⚠️ 响应中没有解析出任何内容")
            response_details["warning"] = "No content was processed from the response"
            self.events.emit(EventKind.ERROR, "No Content Processed", response_details)

    async def complete(self, request: ChatRequest, api_key: str) -> str:
        """
        非流式调用（收集完整响应）
        """
        full_response = ""
        async for chunk in self.send(request, api_key):
            full_response += chunk
        return full_response


# 全局单例
_transport: Optional[StreamingTransport] = None


def get_streaming_transport() -> StreamingTransport:
    """获取全局 StreamingTransport 实例"""
    global _transport
    if _transport is None:
        _transport = StreamingTransport()
    return _transport
