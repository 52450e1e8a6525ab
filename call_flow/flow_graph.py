"""
Call Flow Graph
===============

The scripted phone dialogue, one coroutine per webhook step:

    welcome -> process-hcn -> process-dob -> process-name        (intake)
    welcome -> process-hcn -> record -> recording-complete       (voicemail)

Steps never keep server-side state. Values collected so far travel in the
query string of the action URL handed to Twilio and come back on the next
callback. Each step returns a StepResult; ``run_step`` is the single place
where an unexpected fault becomes a failure, and ``render`` turns a failure
into the shared apology-and-hang-up TwiML.
"""

import datetime
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional
from urllib.parse import urlencode

from twilio.twiml.voice_response import VoiceResponse

from call_flow import prompts
from call_flow.settings import FLOW_VOICEMAIL, IVRSettings
from hcn_tool.hcn_validator import check_health_card
from hcn_tool.input_tools import (
    DOB_LENGTH,
    HCN_LENGTH,
    clean_digits,
    dob_to_timestamp,
    parse_dob,
    split_spoken_name,
    timestamp_to_dob,
    validate_hcn_format,
)

logger = logging.getLogger(__name__)

WELCOME_PATH = "/voice/welcome"
PROCESS_HCN_PATH = "/voice/process-hcn"
PROCESS_DOB_PATH = "/voice/process-dob"
PROCESS_NAME_PATH = "/voice/process-name"
RECORDING_COMPLETE_PATH = "/voice/recording-complete"

KEYPAD_TIMEOUT = 10
SPEECH_TIMEOUT = 5
FINISH_KEY = "#"

# Turns a relative path into the absolute URL Twilio must call back.
UrlBuilder = Callable[[str], str]


@dataclass(frozen=True)
class StepResult:
    """Outcome of one webhook step: TwiML to return, or why the step failed."""

    response: Optional[VoiceResponse] = None
    reason: Optional[str] = None

    @classmethod
    def success(cls, response: VoiceResponse) -> "StepResult":
        return cls(response=response)

    @classmethod
    def failure(cls, reason: str) -> "StepResult":
        return cls(reason=reason)

    @property
    def ok(self) -> bool:
        return self.response is not None


@dataclass(frozen=True)
class PatientIntake:
    """Everything collected by the intake flow, assembled on the last step."""

    hcn: Optional[str]
    date_of_birth: Optional[datetime.date]
    first_name: Optional[str]
    last_name: Optional[str]
    transcript: str
    caller: str

    def describe(self) -> str:
        dob = self.date_of_birth.isoformat() if self.date_of_birth else "<unknown>"
        return (
            f"HCN={self.hcn or '<unknown>'}, DOB={dob}, "
            f"FirstName={self.first_name or '<unknown>'}, LastName={self.last_name or '<unknown>'}, "
            f"SpeechResult={self.transcript!r}, From={self.caller or '<unknown>'}"
        )


def with_query(path: str, **params: str) -> str:
    """Append URL-encoded carried values to a step path."""
    return f"{path}?{urlencode(params)}" if params else path


def apology_response(settings: IVRSettings) -> VoiceResponse:
    response = VoiceResponse()
    response.say(prompts.APOLOGY, voice=settings.voice)
    response.hangup()
    return response


def _retry(message: str, redirect_url: str, settings: IVRSettings) -> StepResult:
    response = VoiceResponse()
    response.say(message, voice=settings.voice)
    response.redirect(redirect_url, method="POST")
    return StepResult.success(response)


async def run_step(step_name: str, step: Callable[[], Awaitable[StepResult]]) -> StepResult:
    """
    Run one step, converting any unexpected exception into a failure result.

    Args:
        step_name (str): Used in the log line, normally the route path.
        step (Callable): Zero-argument coroutine function producing the StepResult.

    Returns:
        StepResult: The step's own result, or a failure naming the exception type.
    """
    try:
        return await step()
    except Exception as e:
        logger.exception(f"Unhandled exception in {step_name}")
        return StepResult.failure(f"Unhandled {type(e).__name__} in {step_name}")


def render(result: StepResult, settings: IVRSettings) -> str:
    """TwiML text for a step result; failures become the generic apology.

    Failures are logged where they happen, not here.
    """
    if result.ok:
        return str(result.response)
    return str(apology_response(settings))


async def welcome_step(url_for: UrlBuilder, settings: IVRSettings) -> StepResult:
    action = url_for(PROCESS_HCN_PATH)

    response = VoiceResponse()
    gather = response.gather(
        input="dtmf",
        num_digits=HCN_LENGTH,
        action=action,
        method="POST",
        timeout=KEYPAD_TIMEOUT,
        finish_on_key=FINISH_KEY,
    )
    gather.say(prompts.welcome_prompt(settings.practice_name), voice=settings.voice)

    # Reached only when the gather times out without digits.
    response.say(prompts.NO_INPUT, voice=settings.voice)
    response.redirect(url_for(WELCOME_PATH), method="POST")

    logger.info(f"Returning TwiML for {WELCOME_PATH} with action={action}")
    return StepResult.success(response)


async def process_hcn_step(
    digits: str,
    caller: str,
    carried_hcn: Optional[str],
    validator,
    url_for: UrlBuilder,
    settings: IVRSettings,
) -> StepResult:
    """
    Validate the keyed-in health card number and move on to the next question.

    When the platform calls back without digits but with an ``hcn`` carried in
    the query string (the date of birth step sends callers back here), that
    number is re-checked so the caller resumes at the birth date question.
    """
    raw = digits
    if not raw and carried_hcn:
        logger.info(f"No digits posted, resuming with carried HCN {carried_hcn!r}")
        raw = carried_hcn

    logger.info(f"Parsed Digits='{raw}', From='{caller}'")
    is_valid_format, hcn = validate_hcn_format(raw)
    if not is_valid_format:
        logger.warning(f"Invalid digits length: {len(hcn)} (raw: {raw!r})")
        return _retry(prompts.HCN_BAD_LENGTH, url_for(WELCOME_PATH), settings)

    if not await check_health_card(validator, hcn, settings.hcn_lookup_timeout):
        logger.info(f"HCN not found: {hcn}")
        return _retry(prompts.HCN_NOT_FOUND, url_for(WELCOME_PATH), settings)

    logger.info(f"HCN validated: {hcn}")
    if settings.flow == FLOW_VOICEMAIL:
        return StepResult.success(_record_message(hcn, url_for, settings))
    return StepResult.success(_ask_for_dob(hcn, url_for, settings))


def _ask_for_dob(hcn: str, url_for: UrlBuilder, settings: IVRSettings) -> VoiceResponse:
    response = VoiceResponse()
    gather = response.gather(
        input="dtmf",
        num_digits=DOB_LENGTH,
        action=url_for(with_query(PROCESS_DOB_PATH, hcn=hcn)),
        method="POST",
        timeout=KEYPAD_TIMEOUT,
        finish_on_key=FINISH_KEY,
    )
    gather.say(prompts.DOB_PROMPT, voice=settings.voice)

    response.say(prompts.DOB_NOT_RECEIVED, voice=settings.voice)
    response.redirect(url_for(WELCOME_PATH), method="POST")
    return response


def _record_message(hcn: str, url_for: UrlBuilder, settings: IVRSettings) -> VoiceResponse:
    response = VoiceResponse()
    response.say(prompts.MESSAGE_PROMPT, voice=settings.voice)
    response.record(
        action=url_for(with_query(RECORDING_COMPLETE_PATH, hcn=hcn)),
        method="POST",
        max_length=settings.recording_max_length,
        finish_on_key=FINISH_KEY,
        play_beep=True,
    )

    # Twilio skips this when the recording completes and the action is fetched.
    response.say(prompts.MESSAGE_NOT_RECEIVED, voice=settings.voice)
    response.hangup()
    return response


async def process_dob_step(
    digits: str,
    caller: str,
    carried_hcn: Optional[str],
    url_for: UrlBuilder,
    settings: IVRSettings,
) -> StepResult:
    logger.info(f"Received DOB Digits='{digits}', From='{caller}'")
    logger.info(f"HCN from query string: {carried_hcn}")

    has_hcn, hcn = validate_hcn_format(carried_hcn)
    if not has_hcn:
        logger.warning(f"Missing or malformed HCN in query string: {carried_hcn!r}")
        return _retry(prompts.HCN_LOST, url_for(WELCOME_PATH), settings)

    retry_url = url_for(with_query(PROCESS_HCN_PATH, hcn=hcn))
    clean = clean_digits(digits)
    if len(clean) != DOB_LENGTH:
        logger.warning(f"Invalid DOB digits length: {len(clean)} (raw: {digits!r})")
        return _retry(prompts.DOB_BAD_LENGTH, retry_url, settings)

    dob, error = parse_dob(clean)
    if dob is None:
        logger.warning(f"DOB parse failed for input: {clean} ({error})")
        return _retry(prompts.DOB_UNPARSEABLE, retry_url, settings)

    dob_iso = dob_to_timestamp(dob)
    logger.info(f"Parsed DOB: {dob} (ISO: {dob_iso})")

    response = VoiceResponse()
    gather = response.gather(
        input="speech",
        action=url_for(with_query(PROCESS_NAME_PATH, hcn=hcn, dob=dob_iso)),
        method="POST",
        timeout=SPEECH_TIMEOUT,
        speech_timeout="auto",
        hints=prompts.NAME_HINTS,
    )
    gather.say(prompts.NAME_PROMPT, voice=settings.name_voice)

    response.say(prompts.NAME_NOT_RECEIVED, voice=settings.voice)
    response.redirect(url_for(WELCOME_PATH), method="POST")
    return StepResult.success(response)


async def process_name_step(
    speech: str,
    caller: str,
    carried_hcn: Optional[str],
    carried_dob: Optional[str],
    settings: IVRSettings,
) -> StepResult:
    logger.info(
        f"Final collected values: HCN={carried_hcn}, DOB={carried_dob}, "
        f"SpeechResult={speech}, From={caller}"
    )

    first_name, last_name = split_spoken_name(speech)
    logger.info(f"Parsed name: FirstName={first_name or '<unknown>'}, LastName={last_name or '<unknown>'}")

    dob = timestamp_to_dob(carried_dob)
    # The carried value was cleaned on the HCN step; anything else is stale or tampered.
    has_hcn, hcn = validate_hcn_format(carried_hcn)
    has_hcn = has_hcn and hcn == carried_hcn
    intake = PatientIntake(
        hcn=hcn if has_hcn else None,
        date_of_birth=dob,
        first_name=first_name,
        last_name=last_name,
        transcript=speech or "",
        caller=caller or "",
    )
    if intake.hcn is None or dob is None:
        logger.warning(
            f"Incomplete intake record, carried values missing or invalid: "
            f"hcn={carried_hcn!r}, dob={carried_dob!r}"
        )
    logger.info(f"Patient intake collected: {intake.describe()}")

    response = VoiceResponse()
    response.say(prompts.goodbye(first_name), voice=settings.voice)
    response.hangup()
    return StepResult.success(response)


async def recording_complete_step(
    recording_url: str,
    caller: str,
    duration: Optional[str],
    carried_hcn: Optional[str],
    settings: IVRSettings,
) -> StepResult:
    logger.info(
        f"Caller: {caller}, HCN: {carried_hcn or '<unknown>'}, "
        f"RecordingDuration: {duration or '<unknown>'}, RecordingUrl: {recording_url}"
    )
    if not recording_url:
        logger.warning("Recording callback arrived without a RecordingUrl")

    response = VoiceResponse()
    response.say(prompts.MESSAGE_THANKS, voice=settings.voice)
    response.hangup()
    return StepResult.success(response)
