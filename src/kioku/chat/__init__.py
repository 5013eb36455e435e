"""Chat orchestration."""

from .prompt import build_system_prompt, diagnose
from .service import ChatError, ChatResult, ChatService, SendGuard

__all__ = [
    "ChatError",
    "ChatResult",
    "ChatService",
    "SendGuard",
    "build_system_prompt",
    "diagnose",
]
