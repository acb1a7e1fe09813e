from .samples import get_sample_questions
from .session import ChatSession, SessionError

__all__ = [
    "ChatSession",
    "SessionError",
    "get_sample_questions",
]
