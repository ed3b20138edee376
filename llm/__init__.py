# LLM Module
from .schemas import ChatMessage, ChatRequest, ImagePart, InteractionMode, TextPart
from .prompt_builder import ChatRequestBuilder, get_request_builder
from .client import StreamingTransport, get_streaming_transport
from .stream_parser import SSEStreamParser, parse_stream_body

__all__ = [
    "ChatMessage",
    "ChatRequest",
    "ImagePart",
    "InteractionMode",
    "TextPart",
    "ChatRequestBuilder",
    "get_request_builder",
    "StreamingTransport",
    "get_streaming_transport",
    "SSEStreamParser",
    "parse_stream_body",
]
