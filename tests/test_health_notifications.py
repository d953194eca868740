from __future__ import annotations

import smtplib

import pytest
from fastapi.testclient import TestClient

from sportspm.core.config import Settings
from sportspm.services import notifications
from sportspm.services.notifications import EmailNotificationService

from conftest import auth_headers

API = "/api/v1"


def test_health_reports_database_connected(client: TestClient) -> None:
    response = client.get(f"{API}/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "ok"
    assert body["database"] == "connected"
    assert "timestamp" in body


def _settings(**overrides) -> Settings:
    values = {
        "EMAILS_ENABLED": True,
        "SMTP_HOST": "smtp.example.com",
        "SMTP_PORT": 2525,
        "SMTP_USER": "mailer",
        "SMTP_PASSWORD": "pw",
        "EMAILS_FROM": "noreply@example.com",
    }
    values.update(overrides)
    return Settings(**values)


EXPENSE_CONTEXT = {
    "project_name": "Youth Football League",
    "description": "Match balls",
    "submitter_name": "Tess Member",
    "category": "Equipment",
    "amount": "120.00",
    "expense_date": "2026-03-14",
    "actual_cost": "620.00",
    "budget": "1000.00",
    "budget_status": "Under Budget",
}


def test_render_uses_first_line_as_subject() -> None:
    service = EmailNotificationService(_settings())
    subject, body = service.render("expense_submitted.txt", EXPENSE_CONTEXT)
    assert subject == "[Youth Football League] New expense submitted: Match balls"
    assert "Tess Member submitted an expense" in body
    assert "(Under Budget)" in body


def test_disabled_service_never_connects(monkeypatch: pytest.MonkeyPatch) -> None:
    def _fail(*args, **kwargs):
        raise AssertionError("SMTP must not be used when emails are disabled")

    monkeypatch.setattr(smtplib, "SMTP", _fail)
    service = EmailNotificationService(_settings(EMAILS_ENABLED=False))
    assert service.notify("expense_submitted.txt", ["max@example.com"], EXPENSE_CONTEXT) == (False, "disabled")


class _FakeSMTP:
    sent = []

    def __init__(self, host, port, timeout=None):
        self.host, self.port = host, port
        self.tls = False
        self.logged_in = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        self.tls = True

    def login(self, user, password):
        self.logged_in = user

    def sendmail(self, sender, recipients, message):
        _FakeSMTP.sent.append((self, sender, recipients, message))


def test_notify_sends_rendered_message(monkeypatch: pytest.MonkeyPatch) -> None:
    _FakeSMTP.sent = []
    monkeypatch.setattr(smtplib, "SMTP", _FakeSMTP)
    service = EmailNotificationService(_settings())

    ok, error = service.notify("expense_submitted.txt", ["max@example.com", ""], EXPENSE_CONTEXT)

    assert (ok, error) == (True, None)
    server, sender, recipients, message = _FakeSMTP.sent[0]
    assert (server.host, server.port, server.tls, server.logged_in) == ("smtp.example.com", 2525, True, "mailer")
    assert sender == "noreply@example.com"
    assert recipients == ["max@example.com"]
    assert "Subject: [Youth Football League] New expense submitted: Match balls" in message


def test_smtp_failure_is_reported_not_raised(monkeypatch: pytest.MonkeyPatch) -> None:
    class _Broken(_FakeSMTP):
        def sendmail(self, sender, recipients, message):
            raise smtplib.SMTPServerDisconnected("connection dropped")

    monkeypatch.setattr(smtplib, "SMTP", _Broken)
    service = EmailNotificationService(_settings())

    ok, error = service.notify("expense_submitted.txt", ["max@example.com"], EXPENSE_CONTEXT)
    assert ok is False
    assert "connection dropped" in error


def test_expense_is_committed_even_when_email_fails(
    client: TestClient, monkeypatch: pytest.MonkeyPatch, project, member, manager
) -> None:
    def _refuse(*args, **kwargs):
        raise ConnectionRefusedError("no mail server")

    monkeypatch.setattr(smtplib, "SMTP", _refuse)
    monkeypatch.setattr(notifications, "_service", EmailNotificationService(_settings()))

    response = client.post(
        f"{API}/budget/expenses",
        json={
            "project_id": project.id,
            "description": "Bibs",
            "amount": "40",
            "category": "Equipment",
            "expense_date": "2026-05-01",
        },
        headers=auth_headers(member),
    )
    assert response.status_code == 201
    listed = client.get(f"{API}/budget/projects/{project.id}/expenses", headers=auth_headers(member)).json()
    assert [e["description"] for e in listed] == ["Bibs"]
