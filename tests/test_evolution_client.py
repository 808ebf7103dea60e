import json
import httpx

from app.services.evolution_client import EvolutionClient


def _client(handler) -> EvolutionClient:
    transport = httpx.MockTransport(handler)
    return EvolutionClient("https://evo.example", "KEY", client=httpx.Client(transport=transport))


def test_send_text_payload_ok():
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content.decode())
        assert request.url.path == "/message/sendText/Loja"
        assert request.headers["apikey"] == "KEY"
        assert body["number"] == "554799999999"
        assert body["text"] == "oi"
        return httpx.Response(200, json={"ok": True})

    res = _client(handler).send_text("Loja", "4799999999", "oi")
    assert res["ok"] is True


def test_send_text_raises_on_400():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, text="bad request")

    try:
        _client(handler).send_text("Loja", "4799999999", "oi")
        assert False, "expected exception"
    except RuntimeError as exc:
        assert "400" in str(exc)


def test_send_text_uses_base_url_override():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.host == "outra.example"
        return httpx.Response(200, json={})

    _client(handler).send_text("Loja", "4799999999", "oi", base_url="https://outra.example/")


def test_is_on_whatsapp():
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content.decode())
        assert request.url.path == "/chat/whatsappNumbers/Loja"
        assert body["numbers"] == ["554799999999"]
        return httpx.Response(200, json=[{"number": "554799999999", "exists": True}])

    assert _client(handler).is_on_whatsapp("Loja", "47 9999-9999") is True


def test_is_on_whatsapp_false_when_missing():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[{"number": "554799999999", "exists": False}])

    assert _client(handler).is_on_whatsapp("Loja", "4799999999") is False
