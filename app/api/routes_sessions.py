from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, HTTPException
from pydantic import BaseModel

from app.db.session import get_db
from app.services import runtime
from app.services.bulk_sender import BulkRecipient, load_recipients
from app.services.conversation.states import MessageType, SessionMetadata

router = APIRouter()

logger = logging.getLogger(__name__)


class MessageRequest(BaseModel):
    texto: str = ""
    message_type: MessageType = MessageType.TEXT
    nome: Optional[str] = None
    tipo_pedido: Optional[str] = None


class BulkRecipientRequest(BaseModel):
    telefone: str
    nome: Optional[str] = None
    tipo_pedido: Optional[str] = None
    answered: bool = False


class BulkSendRequest(BaseModel):
    recipients: Optional[List[BulkRecipientRequest]] = None


@router.get("/sessions/{identity}")
def get_session(identity: str):
    snapshot = runtime.get_registry().get_session_snapshot(identity)
    if snapshot is None:
        raise HTTPException(status_code=404, detail="session_not_found")
    return snapshot


@router.post("/sessions/{identity}/messages")
def post_message(identity: str, body: MessageRequest):
    metadata = SessionMetadata(nome=body.nome, tipo_pedido=body.tipo_pedido, telefone=identity)
    result = runtime.get_registry().process_message(identity, body.texto, body.message_type, metadata)
    if result is None:
        return {"status": "skipped", "reason": "handed_off"}
    return {"status": "processed", **result.to_dict()}


@router.post("/sessions/{identity}/drain")
def drain_session(identity: str):
    return {"identity": identity, "mensagens": runtime.get_registry().drain_pending(identity)}


@router.post("/sessions/{identity}/reset")
def reset_session(identity: str):
    return {"identity": identity, "reset": runtime.get_registry().reset(identity)}


def _run_bulk(recipients: Optional[List[BulkRecipient]]) -> None:
    try:
        if recipients is None:
            recipients = load_recipients(get_db)
        runtime.get_bulk_sender().send(recipients)
    except Exception:
        logger.exception("bulk_send_run_failed")


@router.post("/bulk-send")
def start_bulk_send(background_tasks: BackgroundTasks, body: Optional[BulkSendRequest] = None):
    sender = runtime.get_bulk_sender()
    if sender.running:
        raise HTTPException(status_code=409, detail="bulk_send_running")

    recipients = None
    if body is not None and body.recipients is not None:
        recipients = [BulkRecipient(**r.model_dump()) for r in body.recipients]

    background_tasks.add_task(_run_bulk, recipients)
    return {"status": "queued", "total": len(recipients) if recipients is not None else None}


@router.get("/bulk-send")
def bulk_send_progress():
    return runtime.get_bulk_sender().progress.to_dict()


@router.post("/bulk-send/abort")
def abort_bulk_send():
    sender = runtime.get_bulk_sender()
    if not sender.running:
        return {"status": "idle"}
    sender.abort()
    return {"status": "aborting"}


@router.post("/sessions/reset-all")
def reset_all_sessions():
    sender = runtime.get_bulk_sender()
    if sender.running:
        sender.abort()
    total = runtime.get_registry().reset_all()
    logger.info("sessions_reset_all", extra={"total": total})
    return {"status": "ok", "total": total}
