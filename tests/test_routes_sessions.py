from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api import routes_sessions
from app.services import runtime
from app.services.bulk_sender import BulkProgress


class FakeBulkSender:
    def __init__(self, running=False):
        self.running = running
        self.progress = BulkProgress(total=2, sent=1)
        self.sent_with = None
        self.aborted = False

    def send(self, recipients):
        self.sent_with = list(recipients)
        return self.progress

    def abort(self):
        self.aborted = True


def make_client(monkeypatch, registry, sender=None):
    monkeypatch.setattr(runtime, "get_registry", lambda: registry)
    monkeypatch.setattr(runtime, "get_bulk_sender", lambda: sender or FakeBulkSender())
    app = FastAPI()
    app.include_router(routes_sessions.router)
    return TestClient(app)


def test_message_and_snapshot(monkeypatch, registry):
    client = make_client(monkeypatch, registry)

    assert client.get("/sessions/5511").status_code == 404

    body = client.post("/sessions/5511/messages", json={"texto": "oi", "nome": "Ana"}).json()
    assert body["status"] == "processed"
    assert body["state"] == "option"
    assert "Ana" in body["mensagens"][0]

    client.post("/sessions/5511/messages", json={"texto": "1"})
    client.post("/sessions/5511/messages", json={"texto": "2 mangas"})
    snapshot = client.get("/sessions/5511").json()
    assert snapshot["state"] == "collecting"
    assert snapshot["ledger"]["Manga"] == 2
    assert snapshot["bot_active"] is True


def test_drain_and_reset(monkeypatch, registry, timers):
    client = make_client(monkeypatch, registry)
    client.post("/sessions/5511/messages", json={"texto": "oi"})
    client.post("/sessions/5511/messages", json={"texto": "1"})
    client.post("/sessions/5511/messages", json={"texto": "2 mangas"})
    timers.fire("5511:inactivity")

    mensagens = client.post("/sessions/5511/drain").json()["mensagens"]
    assert len(mensagens) == 1
    assert client.post("/sessions/5511/drain").json()["mensagens"] == []

    assert client.post("/sessions/5511/reset").json()["reset"] is True
    assert client.get("/sessions/5511").json()["state"] == "waiting_for_next"


def test_handed_off_message_is_skipped(monkeypatch, registry):
    client = make_client(monkeypatch, registry)
    client.post("/sessions/5511/messages", json={"texto": "oi"})
    client.post("/sessions/5511/messages", json={"texto": "2"})
    body = client.post("/sessions/5511/messages", json={"texto": "oi"}).json()
    assert body == {"status": "skipped", "reason": "handed_off"}


def test_bulk_send_with_recipients(monkeypatch, registry):
    sender = FakeBulkSender()
    client = make_client(monkeypatch, registry, sender)
    body = client.post("/bulk-send", json={"recipients": [{"telefone": "5547999990001", "nome": "Ana"}]}).json()
    assert body == {"status": "queued", "total": 1}
    assert sender.sent_with[0].nome == "Ana"
    assert client.get("/bulk-send").json()["sent"] == 1


def test_bulk_send_conflict_and_abort(monkeypatch, registry):
    sender = FakeBulkSender(running=True)
    client = make_client(monkeypatch, registry, sender)
    assert client.post("/bulk-send", json={}).status_code == 409
    assert client.post("/bulk-send/abort").json() == {"status": "aborting"}
    assert sender.aborted is True


def test_reset_all_aborts_bulk_send(monkeypatch, registry):
    sender = FakeBulkSender(running=True)
    client = make_client(monkeypatch, registry, sender)
    client.post("/sessions/5511/messages", json={"texto": "oi"})

    assert client.post("/sessions/reset-all").json() == {"status": "ok", "total": 1}
    assert sender.aborted is True
