"""
make_call.py

Places an outbound test call whose voice webhook is this service's welcome
step, so the whole dialogue can be tried on a real phone.

Usage:
    python make_call.py +15551234567
"""

import logging
import os
import sys

from dotenv import load_dotenv
from twilio.rest import Client

logger = logging.getLogger(__name__)

WELCOME_PATH = "/voice/welcome"


def place_test_call(client, to_number: str, from_number: str, public_base_url: str) -> str:
    """
    Ask Twilio to call a number and run the IVR when it is answered.

    Args:
        client (Client): Authenticated Twilio REST client.
        to_number (str): Number to ring, E.164.
        from_number (str): Twilio number to call from, E.164.
        public_base_url (str): Public root of this service, e.g. an ngrok URL.

    Returns:
        str: The Call SID.
    """
    webhook_url = f"{public_base_url.rstrip('/')}{WELCOME_PATH}"
    call = client.calls.create(to=to_number, from_=from_number, url=webhook_url, method="POST")
    logger.info(f"Placed test call {call.sid} to {to_number} with webhook {webhook_url}")
    return call.sid


def main(argv=None) -> int:
    load_dotenv()
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) != 1:
        print("Usage: python make_call.py <to-number>")
        return 2

    account_sid = os.getenv("TWILIO_ACCOUNT_SID")
    auth_token = os.getenv("TWILIO_AUTH_TOKEN")
    from_number = os.getenv("TWILIO_FROM_NUMBER")
    public_base_url = os.getenv("PUBLIC_BASE_URL")

    if not account_sid or not auth_token:
        raise EnvironmentError("Missing TWILIO_ACCOUNT_SID or TWILIO_AUTH_TOKEN in environment.")
    if not from_number or not public_base_url:
        raise EnvironmentError("Missing TWILIO_FROM_NUMBER or PUBLIC_BASE_URL in environment.")

    call_sid = place_test_call(Client(account_sid, auth_token), argv[0], from_number, public_base_url)
    print(call_sid)
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s [%(levelname)s] %(message)s')
    sys.exit(main())
