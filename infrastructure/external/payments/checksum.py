"""
PhonePe-style request/callback checksums.

    X-VERIFY = sha256_hex(base64_payload + endpoint_path + salt_key) + "###" + salt_index

Status queries sign the path alone; callbacks are signed over the received
base64 text with no path. Verification always works on the exact text the
gateway sent, never on a re-serialized copy.
"""
from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
from typing import Any, Optional


SEPARATOR = "###"


def encode_payload(payload: dict[str, Any]) -> str:
    """Compact JSON -> base64 text (what goes into {"request": ...})."""
    raw = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def decode_payload(payload_b64: str) -> dict[str, Any]:
    """base64 text -> JSON object. Raises ValueError on any malformed input."""
    try:
        raw = base64.b64decode(payload_b64, validate=True)
        data = json.loads(raw.decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError, TypeError) as exc:
        raise ValueError(f"undecodable payload: {exc}") from exc
    if not isinstance(data, dict):
        raise ValueError("payload is not a JSON object")
    return data


class ChecksumSigner:
    def __init__(self, salt_key: str, salt_index: str = "1") -> None:
        if not salt_key:
            raise ValueError("salt_key is required")
        self._salt_key = salt_key
        self._salt_index = str(salt_index)

    def _digest(self, text: str) -> str:
        hashed = hashlib.sha256((text + self._salt_key).encode("utf-8")).hexdigest()
        return f"{hashed}{SEPARATOR}{self._salt_index}"

    def sign_request(self, payload_b64: str, endpoint_path: str) -> str:
        return self._digest(payload_b64 + endpoint_path)

    def sign_path(self, path: str) -> str:
        return self._digest(path)

    def sign_callback(self, payload_b64: str) -> str:
        return self._digest(payload_b64)

    def verify_callback(self, payload_b64: Optional[str], supplied_digest: Optional[str]) -> bool:
        """Constant-time check; False for anything malformed, never raises."""
        if not isinstance(payload_b64, str) or not isinstance(supplied_digest, str):
            return False
        if not payload_b64 or SEPARATOR not in supplied_digest:
            return False
        expected = self.sign_callback(payload_b64)
        return hmac.compare_digest(expected.encode("utf-8"), supplied_digest.strip().encode("utf-8"))
