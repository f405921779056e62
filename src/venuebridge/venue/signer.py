"""Ed25519 request authentication for the trading venue.

Every private endpoint expects four headers. The signed material is

    {timestamp_ms}{METHOD}{path_with_query}{body}

where body is the exact JSON text that goes on the wire, and is empty for
GET and DELETE. The signature is url-safe base64; the public key is sent as
``ed25519:<base58>``.
"""

import base64
import json
import time
from dataclasses import dataclass, field
from typing import Any, Optional

import base58
from nacl.signing import SigningKey

from venuebridge.errors import ValidationError

BODYLESS_METHODS = frozenset({"GET", "DELETE"})


def serialize_body(body: Any) -> str:
    """Serialize a request body to the compact JSON text that gets signed and sent."""
    if isinstance(body, str):
        return body
    return json.dumps(body, separators=(",", ":"))


def load_signing_key(secret: str) -> SigningKey:
    """Load a venue key from its base58 form (32-byte seed or 64-byte secret key)."""
    try:
        raw = base58.b58decode(secret)
    except ValueError as e:
        raise ValidationError("Venue secret is not valid base58") from e

    if len(raw) == 64:
        raw = raw[:32]
    if len(raw) != 32:
        raise ValidationError(f"Venue secret must be 32 or 64 bytes, got {len(raw)}")
    return SigningKey(raw)


@dataclass
class SignedRequest:
    """Headers plus the exact body that was signed."""
    headers: dict[str, str]
    body: Optional[str] = None
    timestamp: int = 0
    message: str = field(default="", repr=False)


class RequestSigner:
    """Signs requests for one venue account.

    Usage:
        signer = RequestSigner(account_id, venue_secret)
        signed = signer.sign("POST", "/v1/withdraw_request", payload)
        await client.post(url, content=signed.body, headers=signed.headers)
    """

    def __init__(self, account_id: str, secret: str):
        if not account_id:
            raise ValidationError("Venue account id is required")
        self.account_id = account_id
        self._key = load_signing_key(secret)

    @property
    def orderly_key(self) -> str:
        """Public key in the venue's ``ed25519:<base58>`` form."""
        public = bytes(self._key.verify_key)
        return f"ed25519:{base58.b58encode(public).decode()}"

    def sign(
        self,
        method: str,
        path: str,
        body: Any = None,
        timestamp_ms: Optional[int] = None,
    ) -> SignedRequest:
        """Sign a request.

        Args:
            method: HTTP method
            path: Request path including any query string
            body: Request body (dict or pre-serialized JSON); ignored for GET/DELETE
            timestamp_ms: Fixed timestamp, defaults to now

        Returns:
            SignedRequest with headers and the serialized body
        """
        method = method.upper()
        timestamp = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)

        serialized = None
        if method not in BODYLESS_METHODS and body is not None:
            serialized = serialize_body(body)

        message = f"{timestamp}{method}{path}{serialized or ''}"
        signature = self._key.sign(message.encode("utf-8")).signature

        content_type = (
            "application/x-www-form-urlencoded"
            if method in BODYLESS_METHODS
            else "application/json"
        )
        headers = {
            "Content-Type": content_type,
            "orderly-account-id": self.account_id,
            "orderly-timestamp": str(timestamp),
            "orderly-key": self.orderly_key,
            "orderly-signature": base64.urlsafe_b64encode(signature).decode(),
        }
        return SignedRequest(headers=headers, body=serialized, timestamp=timestamp, message=message)
