from apscheduler.schedulers.background import BackgroundScheduler

from app.services.conversation.states import SessionMetadata
from app.services.outbound_service import OutboundService
from app.settings import settings


class FakeEvolution:
    def __init__(self, fail_on=None):
        self.fail_on = fail_on
        self.sent = []

    def send_text(self, instance, number, text, delay=1200, base_url=None):
        if number == self.fail_on:
            raise RuntimeError("Evolution send_text failed: 502")
        self.sent.append((instance, number, text))
        return {}


def _summary_pending(registry, timers, identity):
    registry.start_collecting(identity, SessionMetadata(nome="Ana"))
    registry.process_message(identity, "2 mangas")
    timers.fire(f"{identity}:inactivity")


def test_run_once_sends_queued_messages(registry, timers, monkeypatch):
    monkeypatch.setattr(settings, "evolution_instance", "Loja")
    _summary_pending(registry, timers, "5511")
    evolution = FakeEvolution()

    service = OutboundService(registry, evolution, scheduler=BackgroundScheduler())
    assert service.run_once() == 1
    assert evolution.sent[0][:2] == ("Loja", "5511")
    assert "RESUMO" in evolution.sent[0][2]
    assert service.run_once() == 0


def test_failed_messages_are_delivered_next_run(registry, timers):
    _summary_pending(registry, timers, "5511")
    _summary_pending(registry, timers, "5522")
    evolution = FakeEvolution(fail_on="5511")

    service = OutboundService(registry, evolution, scheduler=BackgroundScheduler())
    assert service.run_once() == 1
    assert [n for _, n, _ in evolution.sent] == ["5522"]
    assert registry.get_session_snapshot("5511")["pending_messages"] == 1

    evolution.fail_on = None
    assert service.run_once() == 1
    assert [n for _, n, _ in evolution.sent] == ["5522", "5511"]
    assert "RESUMO" in evolution.sent[1][2]
    assert service.run_once() == 0


def test_requeued_messages_keep_order(registry, timers):
    _summary_pending(registry, timers, "5511")
    registry.requeue_front("5511", ["primeira", "segunda"])
    pendentes = registry.drain_pending("5511")
    assert pendentes[:2] == ["primeira", "segunda"]
    assert "RESUMO" in pendentes[2]


def test_start_respects_disabled_flag(registry, monkeypatch):
    monkeypatch.setattr(settings, "outbound_enabled", False)
    scheduler = BackgroundScheduler()
    OutboundService(registry, FakeEvolution(), scheduler=scheduler).start()
    assert scheduler.running is False
