"""Chat module -- streaming completion pipeline for the Kindred companion.

Public API:
    CompletionClient - send_message() with model fallback and streaming
    FallbackPolicy   - sequential candidate-model state machine
    StreamDecoder    - incremental decoder for the completion event stream

Schemas:
    ConversationTurn, ModelInfo, Role

Errors:
    ChatError, ConfigurationError, TransportError, RemoteRejection,
    AllModelsFailedError, StreamDecodeError, RequestCancelledError
"""

from kindred.chat.client import HISTORY_WINDOW, CompletionClient
from kindred.chat.decoder import StreamDecoder, read_stream
from kindred.chat.errors import (
    AllModelsFailedError,
    ChatError,
    ConfigurationError,
    FailureReason,
    RemoteRejection,
    RequestCancelledError,
    StreamDecodeError,
    TransportError,
    user_message,
)
from kindred.chat.fallback import Exhausted, FallbackPolicy, Pending, Succeeded
from kindred.chat.schemas import ConversationTurn, ModelInfo, Role

__all__ = [
    "HISTORY_WINDOW",
    "AllModelsFailedError",
    "ChatError",
    "CompletionClient",
    "ConfigurationError",
    "ConversationTurn",
    "Exhausted",
    "FailureReason",
    "FallbackPolicy",
    "ModelInfo",
    "Pending",
    "RemoteRejection",
    "RequestCancelledError",
    "Role",
    "StreamDecodeError",
    "StreamDecoder",
    "Succeeded",
    "TransportError",
    "read_stream",
    "user_message",
]
