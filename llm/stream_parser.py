# -*- coding: utf-8 -*-
"""
Stream Parser Module
解析 chat/completions 的流式响应 (data: {json} 行)

规则：
1. 空行跳过，非 "data: " 开头的行忽略
2. "data: [DONE]" 是结束标记，忽略
3. JSON 解析失败的行跳过，不中断整个流
"""

import json
from typing import List, Optional
from loguru import logger

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from errors import DecodingError


DATA_PREFIX = "data: "
DONE_SENTINEL = "[DONE]"


def extract_delta(payload: str) -> Optional[str]:
    """
    从一条 data 记录中取出 delta.content

    Returns:
        文本增量；没有内容时返回 None

    Raises:
        DecodingError: 不是合法的 delta 记录
    """
    try:
        record = json.loads(payload)
    except json.JSONDecodeError as e:
        raise DecodingError(payload, str(e)) from e

    if not isinstance(record, dict):
        raise DecodingError(payload, "record is not an object")

    choices = record.get("choices")
    if not choices:
        return None
    if not isinstance(choices, list):
        raise DecodingError(payload, "choices is not a list")

    choice = choices[0]
    delta = choice.get("delta") if isinstance(choice, dict) else None
    if not isinstance(delta, dict):
        raise DecodingError(payload, "missing delta")

    content = delta.get("content")
    if content is None:
        return None
    if not isinstance(content, str):
        raise DecodingError(payload, "content is not a string")
    return content or None


class SSEStreamParser:
    """流式响应解析器 (逐行解析，分行交给 httpx)"""

    SAMPLE_LINES = 5  # 保留前几行用于调试

    def __init__(self):
        self.lines_count = 0
        self.chunks_count = 0
        self.malformed_count = 0
        self.done_received = False
        self.sample_lines: List[str] = []

    def reset(self):
        """重置状态"""
        self.lines_count = 0
        self.chunks_count = 0
        self.malformed_count = 0
        self.done_received = False
        self.sample_lines = []

    def parse_line(self, line: str) -> Optional[str]:
        """解析单行，返回文本增量或 None"""
        line = line.rstrip("\r\n")
        self.lines_count += 1
        if len(self.sample_lines) < self.SAMPLE_LINES:
            self.sample_lines.append(line[:100])

        if not line:
            return None
        if not line.startswith(DATA_PREFIX):
            return None

        payload = line[len(DATA_PREFIX):]
        if payload == DONE_SENTINEL:
            self.done_received = True
            return None

        try:
            content = extract_delta(payload)
        except DecodingError as e:
            self.malformed_count += 1
            logger.debug(f"跳过无法解析的行: {e} | {line[:200]}")
            return None

        if content is not None:
            self.chunks_count += 1
        return content


def parse_stream_body(body: str) -> List[str]:
    """
    解析完整响应体 (同步版本)

    Returns:
        按顺序排列的文本增量
    """
    parser = SSEStreamParser()
    chunks = []
    for line in body.splitlines():
        content = parser.parse_line(line)
        if content is not None:
            chunks.append(content)
    return chunks
