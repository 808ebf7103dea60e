from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from typing import Any, Dict

from fastapi import APIRouter, BackgroundTasks, Request

from app.services import runtime
from app.services.conversation.states import MessageType, SessionMetadata
from app.settings import settings
from app.utils.phone import extract_phone_from_jid, is_group_jid, normalize_phone

router = APIRouter()

SUPPORTED_EVENTS = {"messages.upsert"}
_SEEN_LIMIT = 2000

logger = logging.getLogger(__name__)

_seen_ids: "OrderedDict[str, None]" = OrderedDict()
_seen_lock = threading.Lock()


def _get_body(payload: Dict[str, Any]) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        return {}
    return payload.get("body") if "body" in payload and isinstance(payload.get("body"), dict) else payload


def _extract_event(payload: Dict[str, Any]) -> str | None:
    body = _get_body(payload)
    return body.get("event") or payload.get("event")


def _is_supported_payload(payload: Dict[str, Any]) -> tuple[bool, str | None]:
    if not isinstance(payload, dict):
        return False, "unsupported_payload"
    event = _extract_event(payload)
    if event and event not in SUPPORTED_EVENTS:
        return False, "unsupported_event"
    body = _get_body(payload)
    data = body.get("data") if isinstance(body, dict) else None
    if not isinstance(data, dict):
        return False, "unsupported_payload"
    key = data.get("key")
    message = data.get("message")
    if not isinstance(key, dict) or not isinstance(message, dict):
        return False, "unsupported_payload"
    if not (key.get("id") or key.get("remoteJid") or key.get("senderPn") or key.get("senderLid")):
        return False, "unsupported_payload"
    return True, None


def _missing_envs() -> list[str]:
    missing = []
    if not settings.evolution_base_url:
        missing.append("EVOLUTION_BASE_URL")
    if not settings.evolution_api_key:
        missing.append("EVOLUTION_API_KEY")
    return missing


def _already_seen(message_id: str | None) -> bool:
    if not message_id:
        return False
    with _seen_lock:
        if message_id in _seen_ids:
            return True
        _seen_ids[message_id] = None
        while len(_seen_ids) > _SEEN_LIMIT:
            _seen_ids.popitem(last=False)
    return False


def _extract_text(message: Dict[str, Any]) -> str:
    if message.get("conversation"):
        return message["conversation"]
    extended = message.get("extendedTextMessage") or {}
    return extended.get("text") or ""


def parse_evolution_payload(payload: Dict[str, Any]) -> Dict[str, Any]:
    body = _get_body(payload)
    data = (body or {}).get("data") or {}
    key = data.get("key") or {}
    message = data.get("message") or {}

    remote_jid = key.get("remoteJid") or ""
    telefone_raw = key.get("senderPn") or remote_jid or key.get("senderLid") or ""
    telefone = normalize_phone(extract_phone_from_jid(telefone_raw))

    texto = _extract_text(message)
    message_type = MessageType.TEXT.value if texto else MessageType.OTHER.value
    timestamp = data.get("messageTimestamp") or 0

    return {
        "id_mensagem": key.get("id"),
        "telefone": telefone,
        "nome": data.get("pushName") or "",
        "instancia": body.get("instance") or body.get("instance_id") or settings.evolution_instance,
        "mensagem": texto,
        "timestamp": timestamp,
        "fromMe": key.get("fromMe") or False,
        "mensagem_de_grupo": is_group_jid(remote_jid),
        "url_evolution": body.get("server_url") or settings.evolution_base_url,
        "remote_jid": remote_jid,
        "message_type": message_type,
        "trace_id": f"{key.get('id','')}-{timestamp}",
    }


def _process_message(info: Dict[str, Any]) -> None:
    try:
        registry = runtime.get_registry()
        store = runtime.get_store()
        evolution = runtime.get_evolution_client()

        telefone = info["telefone"]
        cliente = store.get_client(telefone) or {}
        store.update_client_status(telefone, answered=True)
        if cliente.get("is_chatbot") is False:
            registry.restore_handed_off(telefone)

        metadata = SessionMetadata(
            nome=cliente.get("name") or info.get("nome") or None,
            tipo_pedido=cliente.get("order_type"),
            telefone=telefone,
        )
        result = registry.process_message(telefone, info.get("mensagem") or "", info.get("message_type"), metadata)
        if result is None:
            return

        logger.info(
            "message_processed",
            extra={"identity": telefone, "state": result.state.value, "trace_id": info.get("trace_id")},
        )
        for texto in result.mensagens:
            evolution.send_text(info.get("instancia"), telefone, texto, base_url=info.get("url_evolution"))
    except Exception:
        logger.exception("background_process_failed", extra={"trace_id": info.get("trace_id")})


@router.post("/v3.1")
async def webhook_v3(request: Request, background_tasks: BackgroundTasks):
    try:
        payload = await request.json()
    except Exception:
        return {"status": "ignored", "reason": "invalid_json"}

    supported, reason = _is_supported_payload(payload)
    if not supported:
        return {"status": "ignored", "reason": reason or "unsupported_payload"}

    missing = _missing_envs()
    if missing:
        logger.warning("missing_env", extra={"body": missing})
        return {"status": "degraded", "reason": "missing_env", "missing": missing}

    info = parse_evolution_payload(payload)

    if info.get("fromMe"):
        return {"status": "ignored", "reason": "from_me"}
    if info.get("mensagem_de_grupo"):
        return {"status": "ignored", "reason": "group_message"}
    if not info.get("telefone") or len(info.get("telefone")) < 10:
        return {"status": "ignored", "reason": "invalid_phone"}
    if _already_seen(info.get("id_mensagem")):
        return {"status": "duplicate"}

    background_tasks.add_task(_process_message, info)
    return {"status": "queued"}


@router.post("/webhooks/evolution")
async def webhook_evolution_alias(request: Request, background_tasks: BackgroundTasks):
    return await webhook_v3(request, background_tasks)
