"""Request/response protocol spoken over the panerelay WebSocket.

Public API:
    Request, Response, Notification -- Wire messages
    decode_request, encode_message -- Frame codec
    Dispatcher -- Routes requests to the multiplexer and file browser
"""

from panerelay.protocol.dispatcher import Dispatcher
from panerelay.protocol.messages import (
    ERR_AUTH,
    ERR_INTERNAL,
    ERR_INVALID_PARAMS,
    ERR_METHOD_NOT_FOUND,
    ERR_PARSE,
    Notification,
    OutboundMessage,
    ProtocolError,
    Request,
    Response,
    decode_request,
    encode_message,
)

__all__ = [
    "ERR_AUTH",
    "ERR_INTERNAL",
    "ERR_INVALID_PARAMS",
    "ERR_METHOD_NOT_FOUND",
    "ERR_PARSE",
    "Dispatcher",
    "Notification",
    "OutboundMessage",
    "ProtocolError",
    "Request",
    "Response",
    "decode_request",
    "encode_message",
]
