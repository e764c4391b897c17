"""
Conversation State Management for TickerAI.

Keeps per-ticker conversations in memory for the sidebar history. Nothing is
written to disk.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
import logging

from .llm_provider import Message

logger = logging.getLogger(__name__)


@dataclass
class ChatMessage:
    """A displayed message in a conversation."""
    role: str  # "user" or "assistant"
    content: str
    timestamp: datetime = field(default_factory=datetime.now)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.role not in ("user", "assistant"):
            raise ValueError(f"Conversation messages must be user or assistant, got {self.role}")


@dataclass
class ConversationSession:
    """A conversation about one ticker."""
    ticker: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    messages: List[ChatMessage] = field(default_factory=list)

    @property
    def preview(self) -> str:
        return f"Analysis for {self.ticker}"

    def add_message(self, message: ChatMessage) -> ChatMessage:
        """Add a message to the session."""
        self.messages.append(message)
        self.updated_at = datetime.now()
        return message

    def add_user_message(self, content: str, **metadata) -> ChatMessage:
        return self.add_message(ChatMessage(role="user", content=content, metadata=metadata))

    def add_assistant_message(self, content: str, **metadata) -> ChatMessage:
        return self.add_message(ChatMessage(role="assistant", content=content, metadata=metadata))

    def history(self) -> List[Message]:
        """Messages in LLM format, oldest first. A fresh list every call."""
        return [Message(role=m.role, content=m.content) for m in self.messages]

    def history_dicts(self) -> List[Dict[str, str]]:
        """Messages as ``{role, content}`` records."""
        return [{"role": m.role, "content": m.content} for m in self.messages]


class ConversationManager:
    """
    Manages conversation sessions, newest first, capped at ``max_sessions``.
    """

    def __init__(self, max_sessions: int = 20):
        self.max_sessions = max_sessions
        self._sessions: List[ConversationSession] = []
        self._current_session_id: Optional[str] = None

    def create_session(self, ticker: str) -> ConversationSession:
        """Create a new conversation session and make it current."""
        session = ConversationSession(ticker=ticker)
        self._sessions.insert(0, session)

        dropped = self._sessions[self.max_sessions:]
        if dropped:
            logger.info(f"Dropping {len(dropped)} old conversation(s)")
            del self._sessions[self.max_sessions:]

        self._current_session_id = session.id
        return session

    def get_session(self, session_id: str) -> Optional[ConversationSession]:
        """Get a session by ID."""
        for session in self._sessions:
            if session.id == session_id:
                return session
        return None

    def get_current_session(self) -> Optional[ConversationSession]:
        """Get the current active session."""
        if self._current_session_id:
            return self.get_session(self._current_session_id)
        return None

    def set_current_session(self, session_id: str) -> bool:
        """Set the current active session."""
        if self.get_session(session_id):
            self._current_session_id = session_id
            return True
        return False

    def clear_current_session(self) -> None:
        """Start over without a current session (New Chat)."""
        self._current_session_id = None

    def list_sessions(self) -> List[Dict[str, Any]]:
        """List all sessions with basic info."""
        return [
            {
                "id": s.id,
                "ticker": s.ticker,
                "preview": s.preview,
                "created_at": s.created_at.isoformat(),
                "message_count": len(s.messages)
            }
            for s in self._sessions
        ]

    def delete_session(self, session_id: str) -> bool:
        """Delete a session."""
        session = self.get_session(session_id)
        if session is None:
            return False
        self._sessions.remove(session)
        if self._current_session_id == session_id:
            self._current_session_id = None
        return True

    def __len__(self) -> int:
        return len(self._sessions)
