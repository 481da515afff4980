from .json_rpc import MessageFramer, encode_message
from .lsp_client import LspClient
from .protocol import SHOW_COMPANION_METHOD, ShowCompanionRequest

__all__ = [
    "LspClient",
    "MessageFramer",
    "SHOW_COMPANION_METHOD",
    "ShowCompanionRequest",
    "encode_message",
]
