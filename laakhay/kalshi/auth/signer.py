"""Request signers shared by the REST client and the streaming handshake.

Architecture:
    RequestSigner is the single interface callers depend on. Two schemes are
    provided:
    - RsaPssSigner: RSA-PSS / SHA-256 over ``timestamp + METHOD + path``
    - HmacSha256Signer: HMAC-SHA256 over the newline-joined canonical request

Design Decisions:
    - Key material is parsed and validated in __init__, so a bad key fails
      construction instead of the first request
    - Signers never expose key material through repr(), logs or exceptions
    - Timestamps are passed in by the caller; signing itself is pure
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from ..core.config import ClientOptions
from ..core.enums import SigningScheme
from ..core.exceptions import SignerConfigurationError
from .canonical import build_hmac_message, build_rsa_message

ACCESS_KEY_HEADER = "KALSHI-ACCESS-KEY"
ACCESS_TIMESTAMP_HEADER = "KALSHI-ACCESS-TIMESTAMP"
ACCESS_SIGNATURE_HEADER = "KALSHI-ACCESS-SIGNATURE"

SENSITIVE_HEADERS = frozenset(
    h.lower() for h in (ACCESS_KEY_HEADER, ACCESS_SIGNATURE_HEADER, "Authorization")
)


def current_timestamp_ms() -> int:
    """Current Unix time in milliseconds."""
    return int(time.time() * 1000)


def redact_headers(headers: dict[str, str] | None) -> dict[str, str]:
    """Copy of headers with credential values masked, for logging."""
    if not headers:
        return {}
    return {k: ("***" if k.lower() in SENSITIVE_HEADERS else v) for k, v in headers.items()}


@dataclass(frozen=True)
class SignedRequest:
    """Result of signing one request."""

    key_id: str
    timestamp_ms: int
    signature: str

    def headers(self) -> dict[str, str]:
        return {
            ACCESS_KEY_HEADER: self.key_id,
            ACCESS_TIMESTAMP_HEADER: str(self.timestamp_ms),
            ACCESS_SIGNATURE_HEADER: self.signature,
        }

    def __repr__(self) -> str:
        return f"SignedRequest(key_id='***', timestamp_ms={self.timestamp_ms})"


class RequestSigner(ABC):
    """Produces authentication material for one request."""

    scheme: SigningScheme

    def __init__(self, key_id: str) -> None:
        if not key_id or not key_id.strip():
            raise SignerConfigurationError("API key id must be a non-empty string")
        self._key_id = key_id

    @property
    def key_id(self) -> str:
        return self._key_id

    @abstractmethod
    def canonical_message(
        self,
        method: str,
        path: str,
        *,
        query: str | None = None,
        body: bytes | str = b"",
        timestamp_ms: int,
    ) -> bytes:
        """Exact bytes that get signed."""

    @abstractmethod
    def _sign_bytes(self, message: bytes) -> bytes: ...

    @abstractmethod
    def verify(
        self,
        signed: SignedRequest,
        method: str,
        path: str,
        *,
        query: str | None = None,
        body: bytes | str = b"",
    ) -> bool:
        """Check a signature produced for the given request."""

    def sign(
        self,
        method: str,
        path: str,
        *,
        query: str | None = None,
        body: bytes | str = b"",
        timestamp_ms: int | None = None,
    ) -> SignedRequest:
        """Sign a request.

        Args:
            method: HTTP method (case-insensitive)
            path: Request path, optionally with an embedded query string
            query: Extra query string (without leading ``?``)
            body: Raw request body
            timestamp_ms: Unix ms; defaults to now

        Returns:
            SignedRequest with key id, timestamp and base64 signature
        """
        ts = current_timestamp_ms() if timestamp_ms is None else int(timestamp_ms)
        message = self.canonical_message(method, path, query=query, body=body, timestamp_ms=ts)
        signature = base64.b64encode(self._sign_bytes(message)).decode("ascii")
        return SignedRequest(key_id=self._key_id, timestamp_ms=ts, signature=signature)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(key_id='***')"


class HmacSha256Signer(RequestSigner):
    """Deterministic HMAC-SHA256 signer."""

    scheme = SigningScheme.HMAC_SHA256

    def __init__(self, key_id: str, secret: str | bytes) -> None:
        super().__init__(key_id)
        if isinstance(secret, str):
            if not secret.strip():
                raise SignerConfigurationError("API secret must be a non-empty string")
            secret = secret.encode()
        if not secret:
            raise SignerConfigurationError("API secret must be non-empty")
        self._secret = secret

    def canonical_message(self, method, path, *, query=None, body=b"", timestamp_ms):
        return build_hmac_message(timestamp_ms, method, path, query, body)

    def _sign_bytes(self, message: bytes) -> bytes:
        return hmac.new(self._secret, message, hashlib.sha256).digest()

    def verify(self, signed, method, path, *, query=None, body=b""):
        message = self.canonical_message(
            method, path, query=query, body=body, timestamp_ms=signed.timestamp_ms
        )
        expected = base64.b64encode(self._sign_bytes(message)).decode("ascii")
        return signed.key_id == self._key_id and hmac.compare_digest(expected, signed.signature)


class RsaPssSigner(RequestSigner):
    """RSA-PSS (SHA-256, MGF1-SHA256, salt = digest length) signer."""

    scheme = SigningScheme.RSA_PSS

    _PADDING = padding.PSS(mgf=padding.MGF1(hashes.SHA256()), salt_length=padding.PSS.DIGEST_LENGTH)

    def __init__(self, key_id: str, private_key_pem: str | bytes) -> None:
        super().__init__(key_id)
        if isinstance(private_key_pem, str):
            private_key_pem = private_key_pem.encode()
        if not private_key_pem or not private_key_pem.strip():
            raise SignerConfigurationError("RSA private key must be a non-empty PEM string")
        try:
            key = serialization.load_pem_private_key(private_key_pem, password=None)
        except (ValueError, TypeError):
            # Parser errors can quote input; keep key material out of the chain
            raise SignerConfigurationError(
                "Failed to load RSA private key. Ensure the key is an unencrypted PEM "
                "(PRIVATE KEY or RSA PRIVATE KEY)."
            ) from None
        if not isinstance(key, rsa.RSAPrivateKey):
            raise SignerConfigurationError("Private key is not an RSA key")
        self._private_key = key

    def public_key(self) -> rsa.RSAPublicKey:
        return self._private_key.public_key()

    def canonical_message(self, method, path, *, query=None, body=b"", timestamp_ms):
        return build_rsa_message(timestamp_ms, method, path)

    def _sign_bytes(self, message: bytes) -> bytes:
        return self._private_key.sign(message, self._PADDING, hashes.SHA256())

    def verify(self, signed, method, path, *, query=None, body=b""):
        if signed.key_id != self._key_id:
            return False
        message = self.canonical_message(method, path, timestamp_ms=signed.timestamp_ms)
        try:
            self.public_key().verify(
                base64.b64decode(signed.signature), message, self._PADDING, hashes.SHA256()
            )
        except (InvalidSignature, ValueError):
            return False
        return True


def create_signer(options: ClientOptions) -> RequestSigner:
    """Build the signer selected by ``options.signing_scheme``."""
    secret = options.api_secret.get_secret_value()
    if options.signing_scheme == SigningScheme.HMAC_SHA256:
        return HmacSha256Signer(options.api_key, secret)
    return RsaPssSigner(options.api_key, secret)
