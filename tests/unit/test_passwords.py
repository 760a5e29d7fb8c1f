"""Tests for password hashing and strength rules."""

import pytest

from helpdesk.auth.passwords import BcryptPasswordHasher, is_strong_enough


@pytest.fixture(scope="module")
def hasher() -> BcryptPasswordHasher:
    # Minimum cost keeps the suite fast.
    return BcryptPasswordHasher(rounds=4)


def test_hash_and_verify(hasher: BcryptPasswordHasher) -> None:
    hashed = hasher.hash("Secret1")
    assert hashed != "Secret1"
    assert hasher.verify("Secret1", hashed) is True
    assert hasher.verify("Secret2", hashed) is False


def test_malformed_hash_does_not_verify(hasher: BcryptPasswordHasher) -> None:
    assert hasher.verify("Secret1", "not-a-bcrypt-hash") is False


def test_long_passwords_are_truncated_not_rejected(
    hasher: BcryptPasswordHasher,
) -> None:
    password = "A" * 100
    assert hasher.verify(password, hasher.hash(password)) is True


@pytest.mark.parametrize(
    ("password", "ok"),
    [
        ("Secret", True),
        ("secret1", False),
        ("Sec1", False),
        ("ALLCAPS", True),
        ("", False),
    ],
)
def test_is_strong_enough(password: str, ok: bool) -> None:
    assert is_strong_enough(password) is ok
