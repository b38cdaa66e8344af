import logging
import smtplib
from types import SimpleNamespace

from app.services import email_service


def _settings(**overrides):
    values = {
        "domain_client": "http://frontend.example.com/",
        "app_title": "LibreChat",
        "email_configured": True,
        "smtp_host": "smtp.example.com",
        "smtp_port": 587,
        "smtp_username": "mailer",
        "smtp_password": "secret",
        "mail_from": "noreply@example.com",
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def test_build_link_encodes_query(monkeypatch):
    monkeypatch.setattr(email_service, "settings", _settings())

    link = email_service.build_link(
        "/org-admin-invite", token="abc", email="a+b@example.com", orgName="Acme Co"
    )

    assert link == (
        "http://frontend.example.com/org-admin-invite"
        "?token=abc&email=a%2Bb%40example.com&orgName=Acme+Co"
    )


def test_unconfigured_email_logs_link_instead(monkeypatch, caplog):
    monkeypatch.setattr(email_service, "settings", _settings(email_configured=False))

    def _fail(*args, **kwargs):
        raise AssertionError("SMTP must not be used")

    monkeypatch.setattr(smtplib, "SMTP", _fail)

    with caplog.at_level(logging.WARNING, logger=email_service.__name__):
        email_service.send_admin_invitation("x@example.com", "tok")

    assert "admin-invite?token=tok" in caplog.text


def test_delivery_failure_is_logged_not_raised(monkeypatch, caplog):
    monkeypatch.setattr(email_service, "settings", _settings())

    def _down(*args, **kwargs):
        raise OSError("connection refused")

    monkeypatch.setattr(smtplib, "SMTP", _down)

    with caplog.at_level(logging.ERROR, logger=email_service.__name__):
        email_service.send_org_invitation("x@example.com", "tok", "Acme", as_trainer=True)

    assert "Failed to send" in caplog.text


def test_delivery_uses_starttls_and_login(monkeypatch):
    monkeypatch.setattr(email_service, "settings", _settings())
    calls = []

    class FakeSMTP:
        def __init__(self, host, port, timeout):
            calls.append(("connect", host, port))

        def __enter__(self):
            return self

        def __exit__(self, *exc):
            return False

        def ehlo(self):
            pass

        def starttls(self, context):
            calls.append(("starttls",))

        def login(self, user, password):
            calls.append(("login", user))

        def send_message(self, msg):
            calls.append(("send", msg["To"], msg["Subject"]))

    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)

    email_service.send_role_granted("x@example.com", "a trainer", "Acme")

    assert calls[0] == ("connect", "smtp.example.com", 587)
    assert ("starttls",) in calls
    assert ("login", "mailer") in calls
    assert calls[-1] == ("send", "x@example.com", "You are now a trainer of Acme on LibreChat")
