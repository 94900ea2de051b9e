# posagent/services/sunmi/signing.py

import hashlib
import hmac
import secrets
import string
import time
from typing import Dict, NamedTuple, Optional

NONCE_ALPHABET = string.ascii_lowercase + string.digits
NONCE_LENGTH = 6

HEADER_APP_ID = "Sunmi-appid"
HEADER_TIMESTAMP = "Sunmi-timestamp"
HEADER_NONCE = "Sunmi-nonce"
HEADER_SIGNATURE = "Sunmi-sign"


class Signature(NamedTuple):
    signature: str
    timestamp: str
    nonce: str


def generate_nonce(length: int = NONCE_LENGTH) -> str:
    return "".join(secrets.choice(NONCE_ALPHABET) for _ in range(length))


def compute_signature(app_secret: str, body: str, app_id: str, timestamp: str, nonce: str) -> str:
    """HMAC-SHA256 (hex) of body + app_id + timestamp + nonce, keyed with the app secret."""
    message = f"{body}{app_id}{timestamp}{nonce}"
    return hmac.new(app_secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


class RequestSigner:
    """
    Produces the per-call Sunmi signature headers.

    Every call to `sign` draws a fresh timestamp and nonce, so two calls with
    the same body never produce the same signature.
    """

    def __init__(self, app_id: str, app_secret: str):
        self._app_id = app_id
        self._app_secret = app_secret

    @property
    def app_id(self) -> str:
        return self._app_id

    def sign(self, body: str = "", timestamp: Optional[str] = None, nonce: Optional[str] = None) -> Signature:
        timestamp = timestamp or str(int(time.time()))
        nonce = nonce or generate_nonce()
        signature = compute_signature(self._app_secret, body or "", self._app_id, timestamp, nonce)
        return Signature(signature=signature, timestamp=timestamp, nonce=nonce)

    def headers(self, signed: Signature) -> Dict[str, str]:
        return {
            HEADER_APP_ID: self._app_id,
            HEADER_TIMESTAMP: signed.timestamp,
            HEADER_NONCE: signed.nonce,
            HEADER_SIGNATURE: signed.signature,
        }
