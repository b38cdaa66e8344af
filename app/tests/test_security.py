import secrets

import jwt
import pytest

from app.core import security
from app.core.config import get_settings
from app.core.errors import CryptoUnavailable


def test_issue_token_returns_hex_plaintext_and_verifiable_hash():
    raw_token, token_hash = security.issue_token()

    assert len(raw_token) == 64
    int(raw_token, 16)
    assert raw_token not in token_hash
    assert security.verify_token(raw_token, token_hash)
    assert not security.verify_token("0" * 64, token_hash)


def test_token_hashes_are_salted():
    raw_token, first = security.issue_token()

    assert security.hash_token(raw_token) != first


def test_verify_token_rejects_missing_or_malformed_hash():
    assert not security.verify_token("abc", None)
    assert not security.verify_token("abc", "not-an-argon2-hash")


def test_generate_raw_token_reports_unavailable_rng(monkeypatch):
    def _broken(nbytes):
        raise NotImplementedError

    monkeypatch.setattr(secrets, "token_hex", _broken)

    with pytest.raises(CryptoUnavailable):
        security.generate_raw_token()


def test_access_token_carries_roles_and_session():
    token = security.create_access("7", ["ORGADMIN", "TRAINER"], sid=3)
    settings = get_settings()

    payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algo])

    assert payload["sub"] == "7"
    assert payload["roles"] == ["ORGADMIN", "TRAINER"]
    assert payload["sid"] == 3
    assert payload["exp"] > payload["iat"]
