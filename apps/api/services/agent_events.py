"""
Agent event audit trail.

Every AI route records what it was asked to do and how it ended in the
agent_events table. Writes go through the restricted session factory in a
session of their own, so an event survives the request's rollback, and a
failed write is logged and dropped rather than surfaced to the caller.
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from fastapi import Request
from sqlalchemy.orm import Session

from core.database import SessionFactory, get_client_selector
from models import AgentEvent

logger = logging.getLogger(__name__)


class AgentEventRecorder:
    def __init__(self, session_factory: SessionFactory):
        self.session_factory = session_factory

    def record(
        self,
        event_type: str,
        *,
        agent_id: str,
        status: str,
        coach_id: Optional[str] = None,
        session_id: Optional[str] = None,
        group_id: Optional[str] = None,
        player_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Best-effort insert of one event.

        Never throws: audit logging must not block the primary operation.
        """
        payload = dict(details or {})
        payload.setdefault("coach_id_logged", coach_id)
        payload.setdefault("session_id", session_id)

        db = None
        try:
            db = self.session_factory()
            db.add(
                AgentEvent(
                    event_type=event_type,
                    agent_id=agent_id,
                    status=status,
                    player_id=player_id,
                    team_id=group_id,
                    details=payload,
                )
            )
            db.commit()
        except Exception as e:
            if db is not None:
                db.rollback()
            logger.warning(
                f"Agent event logging failed (non-critical): {e}",
                extra={"extra_fields": {"event_type": event_type, "agent_id": agent_id}},
            )
        finally:
            if db is not None:
                db.close()

    @contextmanager
    def track(
        self,
        prefix: str,
        *,
        agent_id: str,
        coach_id: Optional[str] = None,
        session_id: Optional[str] = None,
        group_id: Optional[str] = None,
        player_id: Optional[str] = None,
        db: Optional[Session] = None,
        request_details: Optional[Dict[str, Any]] = None,
    ) -> Iterator["AgentRun"]:
        """
        Record <prefix>_request on entry and <prefix>_error if the block raises.

        The block reports success through run.complete() or run.partial().
        When ``db`` is given it is rolled back before the error event is
        written, so the event insert never waits on the request's locks.
        """
        run = AgentRun(
            self,
            prefix,
            agent_id=agent_id,
            coach_id=coach_id,
            session_id=session_id,
            group_id=group_id,
            player_id=player_id,
        )
        run.emit("request", "started", request_details)
        try:
            yield run
        except Exception as e:
            if db is not None:
                db.rollback()
            run.emit("error", "error", {"error": str(e), "error_type": type(e).__name__})
            raise


class AgentRun:
    """One tracked invocation; shares a request_id across its events."""

    def __init__(self, recorder: AgentEventRecorder, prefix: str, **context: Any):
        self.recorder = recorder
        self.prefix = prefix
        self.request_id = str(uuid.uuid4())
        self.context = context

    def emit(self, suffix: str, status: str, details: Optional[Dict[str, Any]] = None) -> None:
        payload = {"request_id": self.request_id}
        payload.update(details or {})
        self.recorder.record(f"{self.prefix}_{suffix}", status=status, details=payload, **self.context)

    def complete(self, details: Optional[Dict[str, Any]] = None) -> None:
        self.emit("success", "completed", details)

    def partial(self, details: Optional[Dict[str, Any]] = None) -> None:
        self.emit("partial_error", "error", details)


def get_event_recorder(request: Request) -> AgentEventRecorder:
    """FastAPI dependency: recorder bound to the restricted client."""
    return AgentEventRecorder(get_client_selector(request).restricted)
