# posagent/services/sunmi/classifier.py

from typing import Any, FrozenSet, Optional, Tuple

from posagent.models.sunmi import DISQUALIFYING_CODES, AttemptOutcome, extract_vendor_code


def classify_response(
    status_code: int,
    body: Any,
    parsed: bool = True,
    disqualifying: FrozenSet[int] = DISQUALIFYING_CODES,
) -> Tuple[AttemptOutcome, Optional[int]]:
    """
    Decides whether one attempt counts as a genuine success.

    Non-2xx or unparseable bodies are transport errors. A 2xx body whose
    `code` is disqualifying is a vendor error. Anything else passes, other
    non-zero codes included.
    """
    vendor_code = extract_vendor_code(body) if parsed else None
    if not 200 <= status_code < 300 or not parsed:
        return AttemptOutcome.TRANSPORT_ERROR, vendor_code
    if vendor_code is not None and vendor_code in disqualifying:
        return AttemptOutcome.VENDOR_ERROR, vendor_code
    return AttemptOutcome.SUCCESS, vendor_code
