"""
run_dialogue_cli.py

Standalone CLI runner for the phone dialogue.
Plays the part of Twilio against the local app: posts each webhook, prints
what the caller would hear, and follows Gather/Record/Redirect actions, so the
flow can be tried without a phone or a public URL.

Type keypad digits or a spoken phrase at each prompt; an empty line simulates
a gather timeout, 'exit' or 'quit' ends the call.
"""

import logging
import sys
import xml.etree.ElementTree as ET
from typing import Callable, Iterable, List, Optional
from urllib.parse import urlsplit

from fastapi.testclient import TestClient

logger = logging.getLogger(__name__)

WELCOME_PATH = "/voice/welcome"
SIMULATED_RECORDING_URL = "https://api.twilio.com/2010-04-01/Accounts/ACsimulated/Recordings/REsimulated"


def _relative(url: str) -> str:
    parts = urlsplit(url)
    return f"{parts.path}?{parts.query}" if parts.query else parts.path


def simulate_call(
    client: TestClient,
    caller_inputs: Iterable[Optional[str]],
    caller: str = "+15555550100",
    on_say: Callable[[str], None] = lambda text: None,
    max_turns: int = 20,
) -> List[str]:
    """
    Drive the dialogue through the webhooks the way Twilio would.

    Args:
        client (TestClient): Client bound to the IVR app.
        caller_inputs (Iterable): One entry per Gather: digits or speech text.
            None or "" means the caller stayed silent. Running out of inputs
            hangs up at the next Gather.
        caller (str, optional): Value posted as From.
        on_say (Callable, optional): Called with each spoken prompt as it is reached.
        max_turns (int, optional): Upper bound on webhook requests.

    Returns:
        List[str]: Every prompt the caller heard, in order.
    """
    transcript: List[str] = []
    inputs = iter(caller_inputs)
    url = WELCOME_PATH
    form = {"From": caller}

    def say(text):
        transcript.append(text)
        on_say(text)

    for _ in range(max_turns):
        response = client.post(url, data=form)
        root = ET.fromstring(response.content)
        next_url = None
        form = {"From": caller}

        for verb in root:
            if verb.tag == "Say":
                say(verb.text)
            elif verb.tag == "Gather":
                for prompt in verb.iter("Say"):
                    say(prompt.text)
                try:
                    answer = next(inputs)
                except StopIteration:
                    logger.debug("Caller inputs exhausted, hanging up")
                    return transcript
                if not answer:
                    continue
                form["SpeechResult" if verb.get("input") == "speech" else "Digits"] = answer
                next_url = verb.get("action")
                break
            elif verb.tag == "Record":
                form["RecordingUrl"] = SIMULATED_RECORDING_URL
                form["RecordingDuration"] = "5"
                next_url = verb.get("action")
                break
            elif verb.tag == "Redirect":
                next_url = verb.text
                break
            elif verb.tag == "Hangup":
                return transcript

        if next_url is None:
            return transcript
        url = _relative(next_url)

    logger.warning(f"Stopped after {max_turns} webhook requests")
    return transcript


def _keyboard_inputs():
    while True:
        line = input("Caller: ").strip()
        if line.lower() in ("exit", "quit"):
            return
        yield line


def main():
    """
    Run the interactive CLI loop against the IVR app.

    Optionally accepts the caller number as a command-line argument.
    """
    from answer_phone import app

    caller = sys.argv[1] if len(sys.argv) > 1 else "+15555550100"
    logger.info(f"Starting dialogue simulator as caller {caller}")
    print("\nEnter digits or speech at each prompt (empty = silence, 'exit' or 'quit' to hang up):\n")
    with TestClient(app) as client:
        simulate_call(client, _keyboard_inputs(), caller=caller, on_say=lambda text: print(f"IVR: {text}"))
    print("Call ended.")


if __name__ == "__main__":
    main()
