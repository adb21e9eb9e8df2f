"""Shared fixtures for unit tests."""

from __future__ import annotations

import os

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from laakhay.kalshi.core import ClientOptions, SigningScheme


@pytest.fixture(scope="session")
def rsa_private_key_pem() -> str:
    """Throwaway 2048-bit RSA key in PKCS#8 PEM form."""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


@pytest.fixture
def rsa_options(rsa_private_key_pem) -> ClientOptions:
    return ClientOptions(api_key="test-key-id", api_secret=rsa_private_key_pem)


@pytest.fixture
def hmac_options() -> ClientOptions:
    return ClientOptions(
        api_key="test-key-id",
        api_secret="test-secret",
        signing_scheme=SigningScheme.HMAC_SHA256,
    )


@pytest.fixture
def kalshi_env(monkeypatch):
    """Environment with every ``KALSHI_*`` variable removed."""
    for name in list(os.environ):
        if name.upper().startswith("KALSHI_"):
            monkeypatch.delenv(name)
    return monkeypatch
