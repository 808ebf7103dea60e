"""Conversas de pedido: uma máquina de estados por identidade."""

from app.services.conversation.registry import SessionRegistry
from app.services.conversation.session import ConversationSession, ProcessResult
from app.services.conversation.states import ClientStatus, MessageType, SessionMetadata, SessionState
from app.services.conversation.timers import SchedulerTimers, TimerKind

__all__ = [
    "SessionRegistry",
    "ConversationSession",
    "ProcessResult",
    "ClientStatus",
    "MessageType",
    "SessionMetadata",
    "SessionState",
    "SchedulerTimers",
    "TimerKind",
]
