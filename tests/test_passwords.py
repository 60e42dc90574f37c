import pytest

from authgate.auth import passwords
from authgate.auth.passwords import HashError, hash_password, verify_password


def test_default_work_factor_is_12(monkeypatch):
    monkeypatch.delenv("AUTHGATE_BCRYPT_ROUNDS", raising=False)
    assert passwords.rounds_from_env() == 12
    monkeypatch.setattr(passwords, "BCRYPT_ROUNDS", passwords.rounds_from_env())
    assert hash_password("secret1").startswith("$2b$12$")


def test_work_factor_can_be_overridden(monkeypatch):
    monkeypatch.setenv("AUTHGATE_BCRYPT_ROUNDS", "10")
    assert passwords.rounds_from_env() == 10


def test_hash_uses_configured_cost_and_salt():
    h1 = hash_password("secret1")
    h2 = hash_password("secret1")
    assert h1.startswith("$2b$04$")
    assert h1 != h2
    assert "secret1" not in h1


def test_verify_matches_only_the_right_password():
    h = hash_password("secret1")
    assert verify_password(h, "secret1") is True
    assert verify_password(h, "wrong") is False


def test_verify_empty_inputs_never_match():
    h = hash_password("secret1")
    assert verify_password(h, "") is False
    assert verify_password("", "secret1") is False


def test_hash_empty_password_raises():
    with pytest.raises(HashError):
        hash_password("")


def test_verify_malformed_hash_raises():
    with pytest.raises(HashError):
        verify_password("not-a-bcrypt-hash", "secret1")
