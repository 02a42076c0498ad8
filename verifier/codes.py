"""Canonical form for scanned and typed pass codes."""
from __future__ import annotations

import re
from typing import Optional

CODE_LENGTH = 4

_NON_DIGITS = re.compile(r"[^0-9]")
_FOUR_DIGITS = re.compile(r"[0-9]{4}")


def normalize(raw: Optional[str]) -> Optional[str]:
    """Return the first four digits of ``raw`` with everything else removed.

    QR payloads and keypad input both go through here so that the same logical
    code always reaches the verifier in the same form. Returns ``None`` when
    fewer than four digits are present.
    """
    if not raw:
        return None
    digits = _NON_DIGITS.sub("", str(raw))
    if len(digits) < CODE_LENGTH:
        return None
    return digits[:CODE_LENGTH]


def is_normalized_code(value: object) -> bool:
    return isinstance(value, str) and _FOUR_DIGITS.fullmatch(value) is not None


def is_valid_pin(value: object) -> bool:
    # PINs are not normalized: "12-34" is rejected rather than read as 1234
    return isinstance(value, str) and _FOUR_DIGITS.fullmatch(value) is not None


__all__ = ["CODE_LENGTH", "normalize", "is_normalized_code", "is_valid_pin"]
