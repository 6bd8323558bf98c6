"""Transport and reply decoding for the hosted language model."""

from .gemini import GeminiTransport, ModelTransport, TransportReply
from .parsing import StructuredParse, extract_fenced_block, parse_structured_reply

__all__ = [
    "GeminiTransport",
    "ModelTransport",
    "StructuredParse",
    "TransportReply",
    "extract_fenced_block",
    "parse_structured_reply",
]
