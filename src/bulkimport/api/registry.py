"""In-memory registry of open import sessions, owned by the API process."""

from __future__ import annotations

import uuid

from bulkimport.session import ImportSession


class SessionRegistry:
    """Session id -> ImportSession. Lives on ``app.state``, not in the engine."""

    def __init__(self, max_sessions: int = 256) -> None:
        self._sessions: dict[str, ImportSession] = {}
        self._max_sessions = max_sessions

    def add(self, session: ImportSession) -> str:
        if len(self._sessions) >= self._max_sessions:
            # Evict the oldest.
            oldest = next(iter(self._sessions))
            del self._sessions[oldest]
        session_id = uuid.uuid4().hex
        self._sessions[session_id] = session
        return session_id

    def get(self, session_id: str) -> ImportSession | None:
        return self._sessions.get(session_id)

    def discard(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    def __len__(self) -> int:
        return len(self._sessions)
