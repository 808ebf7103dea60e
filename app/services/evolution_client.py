from __future__ import annotations

import logging
from typing import Any, Dict, List

import httpx

from app.utils.phone import normalize_phone

logger = logging.getLogger(__name__)


class EvolutionClient:
    """Cliente da Evolution API (WhatsApp)."""

    def __init__(self, base_url: str, api_key: str, client: httpx.Client | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._client = client

    def _headers(self) -> dict:
        headers = {}
        if self.api_key:
            headers["apikey"] = self.api_key
        return headers

    def _post(self, url: str, payload: dict, timeout: int) -> httpx.Response:
        if self._client is not None:
            return self._client.post(url, headers=self._headers(), json=payload)
        with httpx.Client(timeout=timeout) as client:
            return client.post(url, headers=self._headers(), json=payload)

    def send_text(self, instance: str, number: str, text: str, delay: int = 1200, base_url: str | None = None) -> dict:
        base = (base_url or self.base_url).rstrip("/")
        url = f"{base}/message/sendText/{instance}"
        normalized = normalize_phone(number)
        payload = {"number": normalized, "text": text, "delay": delay}
        resp = self._post(url, payload, timeout=30)
        if resp.status_code >= 400:
            logger.error(
                "evolution_send_text_failed",
                extra={
                    "status_code": resp.status_code,
                    "identity": normalized[-4:] if normalized else "",
                    "body": resp.text[:500],
                },
            )
            raise RuntimeError(f"Evolution send_text failed: {resp.status_code} {resp.text[:500]}")
        return resp.json()

    def check_numbers(self, instance: str, numbers: List[str], base_url: str | None = None) -> List[Dict[str, Any]]:
        base = (base_url or self.base_url).rstrip("/")
        url = f"{base}/chat/whatsappNumbers/{instance}"
        payload = {"numbers": [normalize_phone(n) for n in numbers]}
        resp = self._post(url, payload, timeout=30)
        if resp.status_code >= 400:
            logger.error(
                "evolution_check_numbers_failed",
                extra={"status_code": resp.status_code, "body": resp.text[:500]},
            )
            raise RuntimeError(f"Evolution whatsappNumbers failed: {resp.status_code} {resp.text[:500]}")
        data = resp.json()
        return data if isinstance(data, list) else []

    def is_on_whatsapp(self, instance: str, number: str) -> bool:
        for row in self.check_numbers(instance, [number]):
            if isinstance(row, dict) and row.get("exists"):
                return True
        return False
