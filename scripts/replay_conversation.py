from __future__ import annotations

import argparse
import json
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List

import httpx


def _load_case(path: str) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as handle:
        return json.load(handle)


def _now_ts() -> int:
    return int(datetime.now(tz=timezone.utc).timestamp())


def _build_payload(
    phone: str,
    instance: str,
    text: str,
    message_id: str,
    timestamp: int,
    name: str | None = None,
) -> Dict[str, Any]:
    return {
        "event": "messages.upsert",
        "instance": instance,
        "data": {
            "key": {
                "id": message_id,
                "remoteJid": f"{phone}@s.whatsapp.net",
                "fromMe": False,
                "senderPn": phone,
            },
            "pushName": name or "",
            "message": {"conversation": text},
            "messageTimestamp": timestamp,
        },
    }


def _print_bot(mensagens: List[str]) -> None:
    for texto in mensagens:
        print("\n[bot]")
        print(texto)


def _send_direct(client: httpx.Client, base_url: str, phone: str, text: str, name: str | None) -> List[str]:
    resp = client.post(f"{base_url}/sessions/{phone}/messages", json={"texto": text, "nome": name})
    resp.raise_for_status()
    data = resp.json()
    if data.get("status") == "skipped":
        print("(mensagem ignorada: cliente com atendente)")
        return []
    return data.get("mensagens") or []


def _send_webhook(client: httpx.Client, base_url: str, phone: str, instance: str, text: str, name: str | None) -> None:
    payload = _build_payload(phone, instance, text, f"replay-{uuid.uuid4().hex[:12]}", _now_ts(), name)
    resp = client.post(f"{base_url}/v3.1", json=payload)
    resp.raise_for_status()


def _drain(client: httpx.Client, base_url: str, phone: str) -> List[str]:
    resp = client.post(f"{base_url}/sessions/{phone}/drain")
    resp.raise_for_status()
    return resp.json().get("mensagens") or []


def _wait_and_drain(client: httpx.Client, base_url: str, phone: str, wait_seconds: float, poll: float) -> None:
    deadline = time.monotonic() + wait_seconds
    while time.monotonic() < deadline:
        time.sleep(max(poll, 0.2))
        _print_bot(_drain(client, base_url, phone))


def main() -> None:
    parser = argparse.ArgumentParser(description="Simulador de conversa com o bot de pedidos.")
    parser.add_argument("--url", default="http://localhost:8000", help="URL base da API.")
    parser.add_argument("--case", default=None, help="Arquivo JSON com as mensagens. Sem ele, le do teclado.")
    parser.add_argument("--phone", default="5547999999999", help="Telefone (identidade) do cliente simulado.")
    parser.add_argument("--name", default=None, help="Nome do cliente.")
    parser.add_argument("--instance", default="test", help="Instancia usada no modo --webhook.")
    parser.add_argument("--webhook", action="store_true", help="Envia pelo webhook /v3.1 em vez de /sessions.")
    parser.add_argument("--wait", type=float, default=0.0, help="Segundos aguardando mensagens dos timers apos cada envio.")
    parser.add_argument("--poll", type=float, default=1.0, help="Intervalo de consulta da fila de saida (segundos).")
    parser.add_argument("--reset", action="store_true", help="Reinicia a sessao antes de comecar.")

    args = parser.parse_args()
    base_url = args.url.rstrip("/")

    if args.case:
        case = _load_case(args.case)
        phone = case.get("phone") or args.phone
        name = case.get("name") or args.name
        mensagens = [(m.get("text") or "").strip() for m in case.get("messages") or []]
        roteiro = iter([m for m in mensagens if m])
    else:
        phone = args.phone
        name = args.name
        roteiro = None

    with httpx.Client(timeout=30) as client:
        if args.reset:
            client.post(f"{base_url}/sessions/{phone}/reset").raise_for_status()

        while True:
            if roteiro is not None:
                text = next(roteiro, None)
                if text is None:
                    break
                print(f"\n[cliente] {text}")
            else:
                try:
                    text = input("\n[cliente] ").strip()
                except EOFError:
                    break
                if not text:
                    continue

            if args.webhook:
                _send_webhook(client, base_url, phone, args.instance, text, name)
            else:
                _print_bot(_send_direct(client, base_url, phone, text, name))

            if args.wait > 0:
                _wait_and_drain(client, base_url, phone, args.wait, args.poll)

        if args.wait > 0:
            _wait_and_drain(client, base_url, phone, args.wait, args.poll)

    print("\nSimulacao finalizada.")


if __name__ == "__main__":
    main()
