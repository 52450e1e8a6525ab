"""
Health Card Validation Module
=============================

The patient-record lookup the IVR consults once a caller has keyed in a
health card number (HCN). Two implementations share one async interface,
``validate(hcn) -> bool``:

- LocalHealthCardValidator: format-only stand-in used when no lookup API is
  configured. Accepts any ten digit number.
- RemoteHealthCardValidator: asks an HTTP lookup API whether the number
  belongs to a known patient.

Lookup failures surface as HealthCardLookupError. ``check_health_card`` is
what the dialogue calls; it turns lookup failures and timeouts into "not
found" so a flaky backend only costs the caller a retry.

Dependencies:
    - httpx
    - asyncio
"""

import asyncio
import logging
from typing import Optional

import httpx

from hcn_tool.input_tools import HCN_LENGTH

logger = logging.getLogger(__name__)


class HealthCardLookupError(Exception):
    """The lookup backend could not answer."""


class LocalHealthCardValidator:
    """
    Accepts syntactically valid numbers without consulting any records.

    Example:
        >>> validator = LocalHealthCardValidator()
        >>> await validator.validate("5551234567")
        True
    """

    async def validate(self, hcn: str) -> bool:
        logger.info(f"Validating HCN locally: {hcn}")
        if not hcn or not hcn.strip():
            return False
        return len(hcn) == HCN_LENGTH and hcn.isascii() and hcn.isdigit()


class RemoteHealthCardValidator:
    """
    Looks numbers up through ``GET {base_url}/{hcn}``.

    A 200 means the patient exists, a 404 means it does not. Anything else,
    including transport errors, raises HealthCardLookupError.

    Attributes:
        base_url (str): Lookup API root, without a trailing slash.
        timeout (float): Per-request timeout in seconds.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    async def validate(self, hcn: str) -> bool:
        if not hcn or not hcn.strip():
            return False

        url = f"{self.base_url}/{hcn}"
        logger.info(f"Looking up HCN {hcn} at {self.base_url}")
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(url, headers={"Accept": "application/json"})
        except httpx.HTTPError as e:
            raise HealthCardLookupError(f"HCN lookup request failed: {e}") from e

        if response.status_code == 200:
            return True
        if response.status_code == 404:
            return False
        raise HealthCardLookupError(f"HCN lookup returned HTTP {response.status_code}")


async def check_health_card(validator, hcn: str, timeout: float) -> bool:
    """
    Ask the validator about an HCN, treating lookup trouble as "not found".

    Args:
        validator: Object with an async ``validate(hcn) -> bool`` method.
        hcn (str): Cleaned ten digit number.
        timeout (float): Seconds to wait for an answer.

    Returns:
        bool: True only when the validator confirmed the number in time.

    Any exception other than a lookup error or timeout propagates to the caller.
    """
    try:
        return bool(await asyncio.wait_for(validator.validate(hcn), timeout))
    except asyncio.TimeoutError:
        logger.warning(f"HCN lookup timed out after {timeout}s for {hcn}")
        return False
    except HealthCardLookupError as e:
        logger.warning(f"HCN lookup failed for {hcn}: {e}")
        return False


def create_validator(lookup_url: Optional[str], timeout: float = 5.0):
    """Remote validator when a lookup URL is configured, local otherwise."""
    if lookup_url:
        return RemoteHealthCardValidator(lookup_url, timeout=timeout)
    return LocalHealthCardValidator()
