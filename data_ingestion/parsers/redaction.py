"""
Parsers - Redacted payload digests.

Raw payloads never reach the logs; failures log a short fingerprint
and the length instead.
"""

import hashlib
from typing import Any, Union

from core.constants import REDACTED_FINGERPRINT_LENGTH


def redact(payload: Union[str, bytes, Any]) -> str:
    """Return ``sha256:<fingerprint> len=<n>`` for a payload."""
    if isinstance(payload, bytes):
        raw = payload
    elif isinstance(payload, str):
        raw = payload.encode("utf-8", errors="replace")
    else:
        raw = repr(payload).encode("utf-8", errors="replace")
    fingerprint = hashlib.sha256(raw).hexdigest()[:REDACTED_FINGERPRINT_LENGTH]
    return f"sha256:{fingerprint} len={len(raw)}"
