import hmac

import pytest

from common.auth import StaticKeyVerifier, mask_auth_key


@pytest.mark.parametrize(
    "key, masked",
    [
        ("", "****"),
        ("a", "****"),
        ("abcd", "****"),
        ("abcde", "ab****de"),
        ("service-a-secret-key", "se****ey"),
        ("ключ-секрет", "кл****ет"),
    ],
)
def test_mask_auth_key(key, masked):
    assert mask_auth_key(key) == masked


def test_static_key_verifier_accepts_only_exact_key():
    verifier = StaticKeyVerifier("service-a-secret-key")

    assert verifier.verify("service-a-secret-key")
    assert not verifier.verify("")
    assert not verifier.verify("service-a-secret-ke")
    assert not verifier.verify("service-a-secret-key ")
    assert not verifier.verify("Service-a-secret-key")


def test_static_key_verifier_handles_non_ascii_input():
    verifier = StaticKeyVerifier("service-a-secret-key")
    assert not verifier.verify("sérvice-a-secret-key")


def test_static_key_verifier_compares_in_constant_time(monkeypatch):
    calls = []

    def compare_digest(a, b):
        calls.append((a, b))
        return False

    monkeypatch.setattr(hmac, "compare_digest", compare_digest)

    assert not StaticKeyVerifier("secret").verify("secreT")
    assert calls == [(b"secreT", b"secret")]
