# tests/core/test_logging_config.py
from posagent.core.logging_config import redact_headers
from posagent.services.sunmi.signing import RequestSigner


def test_redact_headers_masks_signature_and_keeps_routing_headers():
    signer = RequestSigner("test-app-id", "test-app-secret")
    headers = signer.headers(signer.sign("", timestamp="1700000000", nonce="abc123"))

    safe = redact_headers(headers)

    assert safe["Sunmi-appid"] == "test-app-id"
    assert safe["Sunmi-nonce"] == "abc123"
    assert safe["Sunmi-sign"] == f"***{headers['Sunmi-sign'][-4:]}"
    assert headers["Sunmi-sign"] not in safe.values()


def test_redact_headers_is_case_insensitive():
    assert redact_headers({"X-Goog-Api-Key": "AIzaSECRET1234"}) == {"X-Goog-Api-Key": "***1234"}
    assert redact_headers({"Authorization": ""}) == {"Authorization": ""}
