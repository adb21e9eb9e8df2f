"""Request authentication."""

from .canonical import build_hmac_message, build_rsa_message, path_and_query
from .signer import (
    ACCESS_KEY_HEADER,
    ACCESS_SIGNATURE_HEADER,
    ACCESS_TIMESTAMP_HEADER,
    HmacSha256Signer,
    RequestSigner,
    RsaPssSigner,
    SignedRequest,
    create_signer,
    current_timestamp_ms,
    redact_headers,
)

__all__ = [
    "ACCESS_KEY_HEADER",
    "ACCESS_TIMESTAMP_HEADER",
    "ACCESS_SIGNATURE_HEADER",
    "RequestSigner",
    "HmacSha256Signer",
    "RsaPssSigner",
    "SignedRequest",
    "create_signer",
    "current_timestamp_ms",
    "redact_headers",
    "build_hmac_message",
    "build_rsa_message",
    "path_and_query",
]
