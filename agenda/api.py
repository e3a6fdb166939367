"""
agenda/api.py
─────────────────────────────────────────────────────────────────────────────
Agenda API layer

TWO USAGE MODES:
  1. Importable class (ingestion connectors, other local services):
         from agenda.api import AgendaAPI
         api = AgendaAPI.from_config(ensure_config())
         api.submit_message({...})
         events = api.get_events(status="pending")

  2. FastAPI HTTP server:
         agenda serve                               # default: 127.0.0.1:8765
         uvicorn --factory agenda.api:_build_app

ENDPOINTS:
  GET  /health                  status, registry contents, queue depth
  GET  /events                  tracked events, newest first
  GET  /events/{id}             single event
  GET  /reminders               tracked reminders, newest first
  GET  /traces                  analysis traces, oldest first
  POST /messages                enqueue one inbound chat message
  POST /emails                  run one email through the pipeline (sync)
  POST /channels/{id}/backfill  reprocess a channel's stored history (sync)

Binds to 127.0.0.1 by default. No authentication: single-user host assumed.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import asdict, is_dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query
from pydantic import BaseModel, Field

from agenda import __version__
from agenda.bootstrap import Agenda, build_agenda
from agenda.errors import AgendaError, StoreError
from agenda.models.record import (
    EmailContent, EmailThreadMessage, InboundMessage,
)

logger = logging.getLogger(__name__)

MAX_PAGE = 500


def _to_dict(obj: Any) -> Dict[str, Any]:
    """Dataclass -> JSON-safe dict (datetimes as ISO-8601)."""
    d = asdict(obj) if is_dataclass(obj) else dict(obj)
    return {k: _jsonable(v) for k, v in d.items()}


def _jsonable(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, list):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    return value


def _page(limit: int, offset: int) -> tuple:
    return min(max(int(limit), 1), MAX_PAGE), max(int(offset), 0)


# ═══════════════════════════════════════════════════════════════════════════
# IMPORTABLE CLASS
# ═══════════════════════════════════════════════════════════════════════════

class AgendaAPI:
    """
    Pure-Python facade over one Agenda object graph.
    No HTTP layer required: import and call directly.
    """

    def __init__(self, agenda: Agenda):
        self.agenda = agenda

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "AgendaAPI":
        return cls(build_agenda(config))

    # ── LIFECYCLE ─────────────────────────────────────────────────────────

    def start(self) -> None:
        self.agenda.processor.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        self.agenda.processor.stop(timeout)

    def health(self) -> Dict[str, Any]:
        return {
            "status":          "ok",
            "version":         __version__,
            "db_path":         str(self.agenda.store.db_path),
            "intents":         self.agenda.pipeline.registry.list(),
            "pending_tasks":   self.agenda.processor.pending_tasks(),
            "unknown_intents": self.agenda.pipeline.unknown_intent_count,
        }

    # ── QUERY ─────────────────────────────────────────────────────────────

    def get_events(
        self,
        status:     Optional[str] = None,
        channel_id: Optional[int] = None,
        limit:      int = 100,
        offset:     int = 0,
    ) -> List[Dict[str, Any]]:
        limit, offset = _page(limit, offset)
        events = self.agenda.store.list_events(
            status=status, channel_id=channel_id, limit=limit, offset=offset
        )
        return [_to_dict(e) for e in events]

    def get_event(self, event_id: int) -> Optional[Dict[str, Any]]:
        event = self.agenda.store.get_event_by_id(event_id)
        return _to_dict(event) if event else None

    def get_reminders(
        self,
        status:     Optional[str] = None,
        channel_id: Optional[int] = None,
        limit:      int = 100,
        offset:     int = 0,
    ) -> List[Dict[str, Any]]:
        limit, offset = _page(limit, offset)
        reminders = self.agenda.store.list_reminders(
            status=status, channel_id=channel_id, limit=limit, offset=offset
        )
        return [_to_dict(r) for r in reminders]

    def get_traces(
        self,
        channel_id: Optional[int] = None,
        status:     Optional[str] = None,
        limit:      int = 100,
        offset:     int = 0,
    ) -> List[Dict[str, Any]]:
        limit, offset = _page(limit, offset)
        traces = self.agenda.store.list_traces(
            channel_id=channel_id, status=status, limit=limit, offset=offset
        )
        return [_to_dict(t) for t in traces]

    # ── INGEST ────────────────────────────────────────────────────────────

    def submit_message(self, msg: InboundMessage) -> None:
        """Queue for the live processor. start() must have been called."""
        self.agenda.processor.submit(msg)

    def process_email(self, source_id: int, email: EmailContent) -> Dict[str, int]:
        source = self.agenda.store.get_email_source(source_id)
        if source is None:
            raise StoreError(f"email source not found: {source_id}")
        return self.agenda.email.process_email(email, source)

    def backfill_channel(self, channel_id: int, limit: Optional[int] = None) -> Dict[str, int]:
        return self.agenda.backfill.backfill_channel(channel_id, limit)


# ═══════════════════════════════════════════════════════════════════════════
# FASTAPI HTTP APP
# ═══════════════════════════════════════════════════════════════════════════

class MessageRequest(BaseModel):
    user_id:     int
    source_type: str
    channel_id:  int
    sender_id:   str = ""
    sender_name: str = ""
    text:        str
    timestamp:   datetime
    subject:     str = ""


class ThreadMessageRequest(BaseModel):
    sender:  str = ""
    date:    str = ""
    subject: str = ""
    body:    str = ""


class EmailRequest(BaseModel):
    source_id:      int
    subject:        str = ""
    sender:         str = ""
    to:             str = ""
    date:           str = ""
    body:           str
    thread_history: List[ThreadMessageRequest] = Field(default_factory=list)


class BackfillRequest(BaseModel):
    limit: Optional[int] = None


def _build_app(api: Optional[AgendaAPI] = None) -> FastAPI:
    """
    Build the FastAPI application. Without an api argument the object
    graph is built from agenda_config.json + environment.
    """
    if api is None:
        from agenda.config import ensure_config
        api = AgendaAPI.from_config(ensure_config())

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        api.start()
        try:
            yield
        finally:
            api.stop()

    _app = FastAPI(
        title     = "Agenda API",
        version   = __version__,
        docs_url  = "/docs",
        redoc_url = None,
        lifespan  = lifespan,
    )
    _app.state.api = api

    # ── ENDPOINTS ───────────────────────────────────────────────────────

    @_app.get("/health", summary="Health check")
    def health():
        return api.health()

    @_app.get("/events", summary="List tracked events")
    def get_events(
        status:     Optional[str] = Query(None, description="pending, synced, rejected, ..."),
        channel_id: Optional[int] = Query(None),
        limit:      int           = Query(100, ge=1, le=MAX_PAGE),
        offset:     int           = Query(0,   ge=0),
    ):
        try:
            data = api.get_events(status=status, channel_id=channel_id, limit=limit, offset=offset)
        except StoreError as exc:
            raise HTTPException(status_code=500, detail=str(exc))
        return {"count": len(data), "events": data}

    @_app.get("/events/{event_id}", summary="Get single event")
    def get_event(event_id: int):
        try:
            data = api.get_event(event_id)
        except StoreError as exc:
            raise HTTPException(status_code=500, detail=str(exc))
        if data is None:
            raise HTTPException(status_code=404, detail=f"Event not found: {event_id}")
        return data

    @_app.get("/reminders", summary="List tracked reminders")
    def get_reminders(
        status:     Optional[str] = Query(None),
        channel_id: Optional[int] = Query(None),
        limit:      int           = Query(100, ge=1, le=MAX_PAGE),
        offset:     int           = Query(0,   ge=0),
    ):
        try:
            data = api.get_reminders(status=status, channel_id=channel_id, limit=limit, offset=offset)
        except StoreError as exc:
            raise HTTPException(status_code=500, detail=str(exc))
        return {"count": len(data), "reminders": data}

    @_app.get("/traces", summary="List analysis traces")
    def get_traces(
        channel_id: Optional[int] = Query(None),
        status:     Optional[str] = Query(None, description="routed, persisted, persist_error, ..."),
        limit:      int           = Query(100, ge=1, le=MAX_PAGE),
        offset:     int           = Query(0,   ge=0),
    ):
        try:
            data = api.get_traces(channel_id=channel_id, status=status, limit=limit, offset=offset)
        except StoreError as exc:
            raise HTTPException(status_code=500, detail=str(exc))
        return {"count": len(data), "traces": data}

    @_app.post("/messages", status_code=202, summary="Enqueue an inbound message")
    def post_message(req: MessageRequest):
        api.submit_message(InboundMessage(**req.model_dump()))
        return {"status": "queued"}

    @_app.post("/emails", summary="Analyze one email")
    def post_email(req: EmailRequest):
        email = EmailContent(
            subject        = req.subject,
            sender         = req.sender,
            body           = req.body,
            to             = req.to,
            date           = req.date,
            thread_history = [EmailThreadMessage(**t.model_dump()) for t in req.thread_history],
        )
        try:
            summary = api.process_email(req.source_id, email)
        except StoreError as exc:
            raise HTTPException(status_code=404, detail=str(exc))
        except AgendaError as exc:
            logger.error(f"Email endpoint error: {exc}", exc_info=True)
            raise HTTPException(status_code=500, detail=str(exc))
        return {"status": "ok", "summary": summary}

    @_app.post("/channels/{channel_id}/backfill", summary="Reprocess channel history")
    def post_backfill(channel_id: int, req: Optional[BackfillRequest] = None):
        limit = req.limit if req is not None else None
        try:
            summary = api.backfill_channel(channel_id, limit)
        except StoreError as exc:
            raise HTTPException(status_code=404, detail=str(exc))
        except AgendaError as exc:
            logger.error(f"Backfill endpoint error: {exc}", exc_info=True)
            raise HTTPException(status_code=500, detail=str(exc))
        return {"status": "ok", "summary": summary}

    return _app


def serve(api: AgendaAPI, host: str, port: int) -> None:
    import uvicorn

    uvicorn.run(_build_app(api), host=host, port=port, log_level="info")


if __name__ == "__main__":
    from agenda.config import ensure_config

    cfg = ensure_config()
    serve(AgendaAPI.from_config(cfg), cfg["api_host"], int(cfg["api_port"]))
