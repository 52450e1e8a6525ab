"""
IVR Settings Module
===================

Phone intake configuration, read from the environment and a ``.env`` file
into a validated ``IVRSettings`` object.

The two dialogue variants are alternative configurations of the same step
graph:

- ``intake``: health card number, date of birth, spoken name.
- ``voicemail``: health card number, then a recorded voice message.

Dependencies:
    - pydantic
    - pydantic-settings
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

FLOW_INTAKE = "intake"
FLOW_VOICEMAIL = "voicemail"

INTAKE_VOICE = "Google.en-US-Chirp3-HD-Leda"
VOICEMAIL_VOICE = "Polly.Joanna"
NAME_VOICE = "Polly.Joanna"

Flow = Literal["intake", "voicemail"]


class IVRSettings(BaseSettings):
    """
    Runtime configuration for the IVR webhooks.

    Each field is read from the environment variable named by its alias and
    can also be passed by field name, e.g. ``IVRSettings(flow="voicemail")``.

    Attributes:
        flow (str): Which dialogue variant runs after the health card step.
        voice (str): Voice profile for every prompt except the name prompt.
            Defaults per flow when left blank.
        name_voice (str): Voice profile used when asking for the caller's name.
        practice_name (str): Spoken in the welcome greeting.
        recording_max_length (int): Maximum voicemail length in seconds.
        hcn_lookup_url (Optional[str]): Base URL of the patient lookup API. When
            unset the local format-only validator is used.
        hcn_lookup_timeout (float): Seconds to wait for the lookup before treating
            the number as not found.
        validate_signature (bool): Reject requests without a valid X-Twilio-Signature.
        twilio_auth_token (Optional[str]): Needed when validate_signature is on.
        log_level (str): Root logging level.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    flow: Flow = Field(default=FLOW_INTAKE, alias="IVR_FLOW")
    voice: str = Field(default="", alias="IVR_VOICE")
    name_voice: str = Field(default=NAME_VOICE, alias="IVR_NAME_VOICE")
    practice_name: str = Field(default="Uptown Eye Specialists", alias="IVR_PRACTICE_NAME")
    recording_max_length: int = Field(default=120, gt=0, alias="IVR_RECORDING_MAX_LENGTH")
    hcn_lookup_url: Optional[str] = Field(default=None, alias="HCN_LOOKUP_URL")
    hcn_lookup_timeout: float = Field(default=5.0, gt=0, alias="HCN_LOOKUP_TIMEOUT")
    validate_signature: bool = Field(default=False, alias="TWILIO_VALIDATE_SIGNATURE")
    twilio_auth_token: Optional[str] = Field(default=None, alias="TWILIO_AUTH_TOKEN")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    @field_validator("flow", mode="before")
    @classmethod
    def _normalize_flow(cls, value):
        if isinstance(value, str):
            return value.strip().lower() or FLOW_INTAKE
        return value

    @field_validator("hcn_lookup_url", "twilio_auth_token", mode="before")
    @classmethod
    def _blank_is_unset(cls, value):
        if isinstance(value, str):
            value = value.strip()
        return value or None

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return (value or "INFO").upper()

    @model_validator(mode="after")
    def _fill_defaults_and_check_signing(self) -> "IVRSettings":
        if not self.voice:
            self.voice = VOICEMAIL_VOICE if self.flow == FLOW_VOICEMAIL else INTAKE_VOICE
        if not self.name_voice:
            self.name_voice = NAME_VOICE
        if self.hcn_lookup_url:
            self.hcn_lookup_url = self.hcn_lookup_url.rstrip("/")
        if self.validate_signature and not self.twilio_auth_token:
            raise ValueError("TWILIO_VALIDATE_SIGNATURE is on but TWILIO_AUTH_TOKEN is not set.")
        return self


@lru_cache()
def get_settings() -> IVRSettings:
    """Process-wide settings, also used as a FastAPI dependency."""
    return IVRSettings()
