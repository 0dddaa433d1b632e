"""
Append-only, locally ordered chat history for one lesson visit.

Every message gets a local id and sequence number the moment it is
appended, so the UI can render it immediately. Its persistence identity
then moves through:

    Pending(local_id) --write ok--> Persisted(local_id, message_id)
            |
            +--write failed--> WriteFailed(local_id, reason)
                                   |
                                   +--retry_failed()--> Pending (once)

Display order is always the local sequence, whatever order the
database acknowledgments arrive in.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from .enums import InputType, MessageRole, MessageType

logger = logging.getLogger(__name__)

# A failed write is retried at most this many times
MAX_WRITE_RETRIES = 1


@dataclass(frozen=True)
class Pending:
    local_id: str


@dataclass(frozen=True)
class Persisted:
    local_id: str
    message_id: int


@dataclass(frozen=True)
class WriteFailed:
    local_id: str
    reason: str


MessageIdentity = Pending | Persisted | WriteFailed


@dataclass
class LogEntry:
    seq: int
    role: MessageRole
    content: str
    message_type: MessageType
    input_type: InputType
    created_at: datetime
    identity: MessageIdentity
    retries: int = 0

    @property
    def local_id(self) -> str:
        return self.identity.local_id

    @property
    def message_id(self) -> int | None:
        if isinstance(self.identity, Persisted):
            return self.identity.message_id
        return None

    @property
    def anchor_id(self) -> str | int:
        """Id the UI should anchor offers to: stored id once known."""
        return self.message_id if self.message_id is not None else self.local_id


class MessageLog:
    def __init__(self):
        self._entries: list[LogEntry] = []
        self._by_local_id: dict[str, LogEntry] = {}
        self._next_seq = 1

    def append(
        self,
        role: MessageRole,
        content: str,
        message_type: MessageType = MessageType.general,
        input_type: InputType = InputType.text,
        now: datetime | None = None,
    ) -> LogEntry:
        seq = self._next_seq
        self._next_seq += 1
        entry = LogEntry(
            seq=seq,
            role=role,
            content=content,
            message_type=message_type,
            input_type=input_type,
            created_at=now or datetime.now(timezone.utc),
            identity=Pending(f"local-{seq}"),
        )
        self._entries.append(entry)
        self._by_local_id[entry.local_id] = entry
        return entry

    def confirm(
        self, local_id: str, message_id: int, created_at: datetime | None = None
    ) -> LogEntry | None:
        """Swap in the stored id. Returns the entry if anything changed."""
        entry = self._by_local_id.get(local_id)
        if entry is None:
            logger.warning("Write confirmation for unknown message %s", local_id)
            return None
        if isinstance(entry.identity, Persisted):
            if entry.identity.message_id != message_id:
                logger.warning(
                    "Message %s already persisted as %s, ignoring id %s",
                    local_id,
                    entry.identity.message_id,
                    message_id,
                )
            return None

        entry.identity = Persisted(local_id, message_id)
        if created_at is not None:
            entry.created_at = created_at
        return entry

    def mark_failed(self, local_id: str, reason: str) -> LogEntry | None:
        entry = self._by_local_id.get(local_id)
        if entry is None:
            logger.warning("Write failure for unknown message %s", local_id)
            return None
        if isinstance(entry.identity, Persisted):
            # A late failure for a write that already succeeded
            return None
        entry.identity = WriteFailed(local_id, reason)
        return entry

    def retry_failed(self) -> list[LogEntry]:
        """Move retryable failed entries back to Pending, oldest first."""
        retrying = []
        for entry in self._entries:
            if not isinstance(entry.identity, WriteFailed):
                continue
            if entry.retries >= MAX_WRITE_RETRIES:
                continue
            entry.retries += 1
            entry.identity = Pending(entry.local_id)
            retrying.append(entry)
        return retrying

    def entries(self) -> list[LogEntry]:
        return list(self._entries)

    def failed(self) -> list[LogEntry]:
        return [e for e in self._entries if isinstance(e.identity, WriteFailed)]

    def last_assistant(self) -> LogEntry | None:
        for entry in reversed(self._entries):
            if entry.role == MessageRole.assistant:
                return entry
        return None

    def resolve(self, message_id: str | int) -> LogEntry | None:
        """Find an entry by local id or stored id."""
        entry = self._by_local_id.get(message_id) if isinstance(message_id, str) else None
        if entry is not None:
            return entry
        for entry in self._entries:
            if entry.message_id == message_id:
                return entry
        return None

    def __len__(self) -> int:
        return len(self._entries)
