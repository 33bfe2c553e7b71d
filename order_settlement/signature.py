"""
signature.py — Webhook Signature Verification

The processor signs every webhook with HMAC-SHA256 over the raw request body
and sends the result in the `BTCPay-Sig` header as `sha256=<hex digest>`.
Verification must run on the body bytes exactly as received; re-serializing
parsed JSON changes whitespace and key order and breaks the match.
"""

import hashlib
import hmac
import logging
from typing import Optional, Union

from .config import InsecureWebhooks, SignedWebhooks
from .errors import InvalidSignature

log = logging.getLogger(__name__)

SIGNATURE_HEADER = "BTCPay-Sig"
SIGNATURE_PREFIX = "sha256="


def compute_signature(secret: str, body: bytes) -> str:
    """Returns the header value the processor would send for `body`."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return SIGNATURE_PREFIX + digest


def verify_signature(secret: str, body: bytes, claimed: Optional[str]) -> bool:
    """
    Checks a claimed signature against the raw body.

    Never raises: a missing, non-ASCII or malformed claim is simply not verified.
    Comparison is constant-time.
    """
    if not claimed or not isinstance(claimed, str):
        return False
    if not claimed.startswith(SIGNATURE_PREFIX):
        return False
    try:
        claimed_bytes = claimed.encode("ascii")
    except UnicodeEncodeError:
        return False
    expected = compute_signature(secret, body).encode("ascii")
    return hmac.compare_digest(expected, claimed_bytes)


class SignatureVerifier:
    """
    Applies the configured webhook security policy.

    With `SignedWebhooks` every event must carry a valid signature. With
    `InsecureWebhooks` every event is accepted unverified; that mode is chosen
    explicitly in configuration and announced once at construction.
    """

    def __init__(self, security: Union[SignedWebhooks, InsecureWebhooks]):
        self.security = security
        if isinstance(security, InsecureWebhooks):
            log.warning("[SECURITY] Webhook signature verification is DISABLED (insecure mode).")

    @property
    def insecure(self) -> bool:
        return isinstance(self.security, InsecureWebhooks)

    def verify(self, body: bytes, claimed: Optional[str]) -> bool:
        if self.insecure:
            return True
        return verify_signature(self.security.secret, body, claimed)

    def check(self, body: bytes, claimed: Optional[str]) -> None:
        """
        Like `verify`, but for callers that reject unauthenticated events.

        Raises:
            InvalidSignature: If the policy requires a signature and `claimed` does not match.
        """
        if not self.verify(body, claimed):
            raise InvalidSignature("Webhook signature missing or invalid")
