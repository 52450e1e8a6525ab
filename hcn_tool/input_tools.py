"""
Caller Input Tools
==================

Helpers that turn raw webhook values (keypad digits, speech transcripts and
values carried in callback query strings) into checked dialogue data.

None of these raise on bad input; they report failure through their return
value so a step can re-prompt the caller.
"""

import datetime
import re
from typing import Optional, Tuple

HCN_LENGTH = 10
DOB_LENGTH = 8
DOB_FORMAT = "%Y%m%d"

_NON_DIGITS = re.compile(r"[^0-9]")


def clean_digits(raw: Optional[str]) -> str:
    """
    Keep only the ASCII digits of a keypad capture, in their original order.

    Args:
        raw (str): Raw value as posted by the platform, may be None.

    Returns:
        str: The digits 0-9 found in raw.
    """
    return _NON_DIGITS.sub("", raw or "")


def validate_hcn_format(raw: Optional[str]) -> Tuple[bool, str]:
    """
    Check that a keypad capture holds a ten digit health card number.

    Args:
        raw (str): Raw keypad capture.

    Returns:
        Tuple[bool, str]: (True, cleaned) if exactly ten digits remain, (False, cleaned) otherwise.
    """
    clean = clean_digits(raw)
    return len(clean) == HCN_LENGTH, clean


def parse_dob(raw: Optional[str]) -> Tuple[Optional[datetime.date], str]:
    """
    Parse an eight digit YYYYMMDD birth date.

    Args:
        raw (str): Raw keypad capture.

    Returns:
        Tuple[Optional[date], str]: (date, "") if valid, (None, error message) otherwise.
    """
    clean = clean_digits(raw)
    if len(clean) != DOB_LENGTH:
        return None, "Date must be eight digits."
    try:
        return datetime.datetime.strptime(clean, DOB_FORMAT).date(), ""
    except ValueError:
        return None, "Date is not a valid YYYYMMDD calendar date."


def dob_to_timestamp(dob: datetime.date) -> str:
    """ISO-8601 timestamp (midnight) carried to the next step."""
    return datetime.datetime.combine(dob, datetime.time()).isoformat()


def timestamp_to_dob(value: Optional[str]) -> Optional[datetime.date]:
    """Inverse of dob_to_timestamp; None for a missing or mangled value."""
    if not value:
        return None
    try:
        return datetime.datetime.fromisoformat(value).date()
    except ValueError:
        return None


def split_spoken_name(text: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """
    Best-effort split of a transcribed name.

    The first word is the first name; everything after it, with its internal
    spacing kept, is the last name.

    Args:
        text (str): SpeechResult transcript.

    Returns:
        Tuple[Optional[str], Optional[str]]: (first_name, last_name), either may be None.
    """
    parts = (text or "").strip().split(None, 1)
    if not parts:
        return None, None
    if len(parts) == 1:
        return parts[0], None
    return parts[0], parts[1]
