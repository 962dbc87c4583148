# -*- coding: utf-8 -*-
"""Location: ./mcpsheets/services/session_service.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Session table and idle-session reaper.

The ``SessionStore`` maps session ids to ``SessionRecord`` objects. It is
created by the application factory, stored on ``app.state.session_store`` and
shared by the MCP endpoint and the ``SessionReaper``. Table mutations are
synchronous, so a check and the mutation that follows it never interleave with
another coroutine; only closing a removed transport awaits.

Records enter the table when the opening ``initialize`` request of their
transport succeeds, and leave it when:

- the reaper finds them idle for longer than ``idle_timeout``,
- the reaper completes a deletion requested with ``DELETE /mcp``, or
- their transport closes.

A record with requests in flight is never evicted.

Examples:
    >>> store = SessionStore(transport_factory=None, idle_timeout=600, clock=lambda: 100.0)
    >>> len(store)
    0
    >>> store.get("missing") is None
    True
    >>> store.mark_delete_requested("missing")
    False
"""

# Standard
import asyncio
from contextlib import contextmanager
from dataclasses import dataclass
import logging
import time
from typing import Any, Callable, Dict, Iterator, List, Optional

# First-Party
from mcpsheets.transports.streamable_http import SessionTransport

logger = logging.getLogger(__name__)

TransportFactory = Callable[..., SessionTransport]


@dataclass
class SessionRecord:
    """Live session state.

    Attributes:
        session_id: Server-generated session id
        created_at: Epoch seconds when the session was registered
        updated_at: Epoch seconds of the latest request on the session
        transport: Protocol handler owned by this session
        delete_requested: Set by ``DELETE /mcp``; the reaper completes the deletion
        active_requests: Requests currently being handled
    """

    session_id: str
    created_at: float
    updated_at: float
    transport: SessionTransport
    delete_requested: bool = False
    active_requests: int = 0


class SessionStore:
    """In-memory session table."""

    def __init__(self, transport_factory: TransportFactory, idle_timeout: float = 600, clock: Callable[[], float] = time.time):
        """Create an empty store.

        Args:
            transport_factory: Builds a new transport; called with an ``on_initialized`` keyword
            idle_timeout: Seconds of inactivity before a session is evicted
            clock: Source of epoch seconds
        """
        self._factory = transport_factory
        self.idle_timeout = idle_timeout
        self.clock = clock
        self._sessions: Dict[str, SessionRecord] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def session_ids(self) -> List[str]:
        """Return the ids of all live sessions."""
        return list(self._sessions)

    def get(self, session_id: str) -> Optional[SessionRecord]:
        """Look up a session without refreshing it.

        Args:
            session_id: Session id

        Returns:
            Optional[SessionRecord]: Record or None
        """
        return self._sessions.get(session_id)

    def get_or_create(self, session_id: Optional[str] = None) -> Optional[SessionTransport]:
        """Return the transport of a known session, or a fresh transport.

        With ``session_id`` the matching record is refreshed and its transport
        returned; an unknown id yields None and nothing is created. Without an
        id a new, unstarted transport is built; it registers itself in the
        table once its opening request succeeds and removes itself when it
        closes.

        Args:
            session_id: Id from the ``mcp-session-id`` header

        Returns:
            Optional[SessionTransport]: Transport, or None for an unknown id
        """
        if session_id is not None:
            record = self._sessions.get(session_id)
            if record is None:
                return None
            self.touch(session_id)
            return record.transport

        transport = self._factory(on_initialized=self._register)
        transport.add_close_callback(self._forget)
        return transport

    def _register(self, transport: SessionTransport) -> None:
        """Add the record of a freshly initialised transport."""
        now = self.clock()
        self._sessions[transport.session_id] = SessionRecord(session_id=transport.session_id, created_at=now, updated_at=now, transport=transport)
        logger.info(f"Session {transport.session_id} created ({len(self._sessions)} active)")

    def _forget(self, transport: SessionTransport) -> None:
        """Drop the record of a closed transport."""
        record = self._sessions.get(transport.session_id) if transport.session_id else None
        if record is not None and record.transport is transport:
            del self._sessions[transport.session_id]
            logger.info(f"Session {transport.session_id} removed after transport closed")

    def touch(self, session_id: str) -> None:
        """Refresh ``updated_at``; unknown ids are ignored.

        Args:
            session_id: Session id
        """
        record = self._sessions.get(session_id)
        if record is not None:
            record.updated_at = max(self.clock(), record.created_at)

    def mark_delete_requested(self, session_id: str) -> bool:
        """Flag a session for deletion by the reaper.

        Args:
            session_id: Session id

        Returns:
            bool: False if the session is unknown
        """
        record = self._sessions.get(session_id)
        if record is None:
            return False
        record.delete_requested = True
        logger.info(f"Deletion requested for session {session_id}")
        return True

    async def remove(self, session_id: str) -> Optional[SessionRecord]:
        """Remove a session and close its transport.

        The record leaves the table before the transport is closed, so the id
        is unknown to any request arriving while the close is in progress.

        Args:
            session_id: Session id

        Returns:
            Optional[SessionRecord]: Removed record, or None if unknown
        """
        record = self._sessions.pop(session_id, None)
        if record is not None:
            await record.transport.close()
        return record

    @contextmanager
    def track_request(self, session_id: str) -> Iterator[SessionRecord]:
        """Mark a request as in flight, refreshing the session before and after.

        Args:
            session_id: Session id of a known session

        Yields:
            SessionRecord: The session record

        Raises:
            KeyError: If the session is unknown
        """
        record = self._sessions[session_id]
        record.active_requests += 1
        self.touch(session_id)
        try:
            yield record
        finally:
            record.active_requests -= 1
            self.touch(session_id)

    async def sweep(self, now: Optional[float] = None) -> List[str]:
        """Evict idle sessions and complete requested deletions.

        Expired records are taken out of the table in one synchronous pass;
        their transports are closed afterwards.

        Args:
            now: Current time; defaults to the store clock

        Returns:
            List[str]: Ids of evicted sessions

        Examples:
            >>> import asyncio
            >>> asyncio.run(SessionStore(transport_factory=None).sweep(now=0.0))
            []
        """
        now = self.clock() if now is None else now
        cutoff = now - self.idle_timeout
        expired: List[SessionRecord] = []
        for session_id, record in list(self._sessions.items()):
            if record.active_requests > 0:
                continue
            if record.delete_requested or record.updated_at < cutoff:
                expired.append(self._sessions.pop(session_id))

        for record in expired:
            await record.transport.close()
            reason = "deleted" if record.delete_requested else "idle"
            logger.info(f"Evicted {reason} session {record.session_id}")
        return [record.session_id for record in expired]


class SessionReaper:
    """Background task that periodically sweeps a ``SessionStore``."""

    def __init__(self, store: SessionStore, interval: float = 60):
        """Create the reaper.

        Args:
            store: Store to sweep
            interval: Seconds between sweeps
        """
        self.store = store
        self.interval = interval
        self._task: Optional["asyncio.Task[Any]"] = None

    @property
    def running(self) -> bool:
        """Whether the sweep task is alive."""
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the sweep loop."""
        if self.running:
            return
        self._task = asyncio.create_task(self._cleanup_loop())
        logger.info(f"Session reaper started (interval={self.interval}s, idle_timeout={self.store.idle_timeout}s)")

    async def shutdown(self) -> None:
        """Stop the sweep loop and close every remaining session."""
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        for session_id in self.store.session_ids():
            await self.store.remove(session_id)
        logger.info("Session reaper shutdown complete")

    async def _cleanup_loop(self) -> None:
        """Sweep every ``interval`` seconds until cancelled."""
        while True:
            try:
                await asyncio.sleep(self.interval)
                evicted = await self.store.sweep()
                if evicted:
                    logger.info(f"Reaper evicted {len(evicted)} session(s), {len(self.store)} remaining")
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in session cleanup loop: {e}", exc_info=True)
