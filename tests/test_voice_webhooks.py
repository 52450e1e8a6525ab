"""
End-to-end tests for the Twilio voice webhooks.

Each test posts form data the way Twilio does and inspects the TwiML verbs
that come back.
"""

import logging
from urllib.parse import parse_qs, urlsplit

import pytest

from call_flow import prompts
from call_flow.settings import NAME_VOICE
from hcn_tool.hcn_validator import HealthCardLookupError

CALLER = "+15555550100"


def verbs(root):
    return [child.tag for child in root]


class TestWelcome:

    def test_prompts_for_health_card_number(self, client, twiml):
        root = twiml(client.post("/voice/welcome", data={"From": CALLER}))

        assert verbs(root) == ["Gather", "Say", "Redirect"]
        gather, fallback, redirect = root
        assert gather.get("input") == "dtmf"
        assert gather.get("numDigits") == "10"
        assert gather.get("timeout") == "10"
        assert gather.get("finishOnKey") == "#"
        assert gather.get("method") == "POST"
        assert gather.get("action") == "http://testserver/voice/process-hcn"
        assert "ten digit health card number" in gather.find("Say").text
        assert "Uptown Eye Specialists" in gather.find("Say").text

        assert fallback.text == prompts.NO_INPUT
        assert redirect.text == "http://testserver/voice/welcome"
        assert redirect.get("method") == "POST"

    def test_action_urls_follow_proxy_headers(self, client, twiml):
        response = client.post(
            "/voice/welcome",
            headers={"X-Forwarded-Host": "abc123.ngrok-free.app", "X-Forwarded-Proto": "https"},
        )
        root = twiml(response)

        assert root.find("Gather").get("action") == "https://abc123.ngrok-free.app/voice/process-hcn"
        assert root.find("Redirect").text == "https://abc123.ngrok-free.app/voice/welcome"

    def test_uses_configured_voice(self, client, twiml, use_settings):
        use_settings(voice="Polly.Matthew", practice_name="Downtown Optometry")
        root = twiml(client.post("/voice/welcome"))

        say = root.find("Gather/Say")
        assert say.get("voice") == "Polly.Matthew"
        assert "Downtown Optometry" in say.text


class TestProcessHcn:

    def test_valid_number_asks_for_birth_date(self, client, validator, twiml):
        root = twiml(client.post("/voice/process-hcn", data={"Digits": "5551234567", "From": CALLER}))

        assert validator.calls == ["5551234567"]
        assert verbs(root) == ["Gather", "Say", "Redirect"]
        gather = root.find("Gather")
        assert gather.get("input") == "dtmf"
        assert gather.get("numDigits") == "8"
        assert gather.get("finishOnKey") == "#"
        assert gather.get("timeout") == "10"
        assert "hcn=5551234567" in gather.get("action")
        assert urlsplit(gather.get("action")).path == "/voice/process-dob"
        assert gather.find("Say").text == prompts.DOB_PROMPT
        assert root.find("Say").text == prompts.DOB_NOT_RECEIVED

    def test_separators_are_stripped_before_lookup(self, client, validator, twiml):
        twiml(client.post("/voice/process-hcn", data={"Digits": "555-123-4567"}))
        assert validator.calls == ["5551234567"]

    def test_wrong_length_redirects_to_welcome_without_lookup(self, client, validator, twiml, caplog):
        caplog.set_level(logging.INFO)
        root = twiml(client.post("/voice/process-hcn", data={"Digits": "123", "From": CALLER}))

        assert validator.calls == []
        assert verbs(root) == ["Say", "Redirect"]
        assert root.find("Say").text == prompts.HCN_BAD_LENGTH
        assert root.find("Redirect").text == "http://testserver/voice/welcome"
        assert any(
            record.levelno == logging.WARNING and "'123'" in record.getMessage()
            for record in caplog.records
        )

    def test_unknown_number_redirects_to_welcome(self, client, validator, twiml):
        validator.result = False
        root = twiml(client.post("/voice/process-hcn", data={"Digits": "5551234567"}))

        assert root.find("Say").text == prompts.HCN_NOT_FOUND
        assert root.find("Redirect").text == "http://testserver/voice/welcome"

    def test_lookup_failure_is_treated_as_not_found(self, client, validator, twiml):
        validator.error = HealthCardLookupError("records API returned HTTP 503")
        root = twiml(client.post("/voice/process-hcn", data={"Digits": "5551234567"}))

        assert root.find("Say").text == prompts.HCN_NOT_FOUND
        assert root.find("Hangup") is None

    def test_unexpected_fault_apologises_and_hangs_up(self, client, validator, twiml, caplog):
        validator.error = RuntimeError("connection string secret=hunter2")
        response = client.post("/voice/process-hcn", data={"Digits": "5551234567"})
        root = twiml(response)

        assert verbs(root) == ["Say", "Hangup"]
        assert root.find("Say").text == prompts.APOLOGY
        assert "hunter2" not in response.text
        failures = [record for record in caplog.records if record.exc_info]
        assert failures
        assert "hunter2" in str(failures[0].exc_info[1])
        assert "/voice/process-hcn" in failures[0].getMessage()

    def test_resumes_with_carried_number_when_no_digits(self, client, validator, twiml):
        root = twiml(client.post("/voice/process-hcn?hcn=5551234567", data={"From": CALLER}))

        assert validator.calls == ["5551234567"]
        assert root.find("Gather").get("numDigits") == "8"

    def test_voicemail_flow_records_a_message(self, client, validator, twiml, use_settings):
        use_settings(flow="voicemail", voice="Polly.Joanna", recording_max_length=90)
        root = twiml(client.post("/voice/process-hcn", data={"Digits": "5551234567"}))

        assert verbs(root) == ["Say", "Record", "Say", "Hangup"]
        assert root.find("Say").text == prompts.MESSAGE_PROMPT
        record = root.find("Record")
        assert record.get("maxLength") == "90"
        assert record.get("finishOnKey") == "#"
        assert record.get("playBeep").lower() == "true"
        action = urlsplit(record.get("action"))
        assert action.path == "/voice/recording-complete"
        assert parse_qs(action.query) == {"hcn": ["5551234567"]}

    def test_replayed_request_gives_identical_response(self, client):
        form = {"Digits": "5551234567", "From": CALLER}
        first = client.post("/voice/process-hcn", data=form)
        second = client.post("/voice/process-hcn", data=form)

        assert first.text == second.text


class TestProcessDob:

    def test_valid_date_asks_for_name(self, client, twiml):
        root = twiml(
            client.post("/voice/process-dob?hcn=5551234567", data={"Digits": "19850601", "From": CALLER})
        )

        assert verbs(root) == ["Gather", "Say", "Redirect"]
        gather = root.find("Gather")
        assert gather.get("input") == "speech"
        assert gather.get("speechTimeout") == "auto"
        assert gather.get("timeout") == "5"
        assert gather.find("Say").text == prompts.NAME_PROMPT
        assert gather.find("Say").get("voice") == NAME_VOICE

        action = urlsplit(gather.get("action"))
        assert action.path == "/voice/process-name"
        assert parse_qs(action.query) == {"hcn": ["5551234567"], "dob": ["1985-06-01T00:00:00"]}
        assert root.find("Say").text == prompts.NAME_NOT_RECEIVED

    def test_wrong_length_returns_to_health_card_step(self, client, twiml):
        root = twiml(client.post("/voice/process-dob?hcn=5551234567", data={"Digits": "1985060"}))

        assert root.find("Say").text == prompts.DOB_BAD_LENGTH
        assert root.find("Redirect").text == "http://testserver/voice/process-hcn?hcn=5551234567"

    def test_impossible_date_returns_to_health_card_step(self, client, twiml):
        root = twiml(client.post("/voice/process-dob?hcn=5551234567", data={"Digits": "19851301"}))

        assert root.find("Say").text == prompts.DOB_UNPARSEABLE
        assert root.find("Redirect").text == "http://testserver/voice/process-hcn?hcn=5551234567"

    @pytest.mark.parametrize("query", ["", "?hcn=", "?hcn=12"])
    def test_missing_carried_number_starts_over(self, client, twiml, query):
        root = twiml(client.post(f"/voice/process-dob{query}", data={"Digits": "19850601"}))

        assert root.find("Say").text == prompts.HCN_LOST
        assert root.find("Redirect").text == "http://testserver/voice/welcome"


class TestProcessName:

    def test_logs_record_and_says_goodbye(self, client, twiml, caplog):
        caplog.set_level(logging.INFO)
        response = client.post(
            "/voice/process-name?hcn=5551234567&dob=1985-06-01T00%3A00%3A00",
            data={"SpeechResult": "Mary Jane Watson", "From": CALLER},
        )
        root = twiml(response)

        assert verbs(root) == ["Say", "Hangup"]
        assert root.find("Say").text == "Thank you Mary. We have recorded your details. Goodbye."
        assert (
            "HCN=5551234567, DOB=1985-06-01, FirstName=Mary, LastName=Jane Watson, "
            "SpeechResult='Mary Jane Watson', From=+15555550100"
        ) in caplog.text

    def test_blank_speech_uses_generic_goodbye(self, client, twiml):
        root = twiml(
            client.post("/voice/process-name?hcn=5551234567&dob=1985-06-01T00%3A00%3A00", data={"SpeechResult": "  "})
        )
        assert root.find("Say").text == "Thank you caller. We have recorded your details. Goodbye."

    def test_missing_carried_values_still_finish_the_call(self, client, twiml, caplog):
        caplog.set_level(logging.INFO)
        root = twiml(client.post("/voice/process-name?dob=garbage", data={"SpeechResult": "John"}))

        assert root.find("Say").text == "Thank you John. We have recorded your details. Goodbye."
        assert root.find("Hangup") is not None
        assert any(
            record.levelno == logging.WARNING and "Incomplete intake record" in record.getMessage()
            for record in caplog.records
        )

    @pytest.mark.parametrize("hcn", ["abc", "12", "555-123-4567"])
    def test_malformed_carried_number_is_flagged(self, client, twiml, caplog, hcn):
        caplog.set_level(logging.INFO)
        root = twiml(
            client.post(
                f"/voice/process-name?hcn={hcn}&dob=1985-06-01T00%3A00%3A00",
                data={"SpeechResult": "John Smith"},
            )
        )

        assert root.find("Say").text == "Thank you John. We have recorded your details. Goodbye."
        assert any(
            record.levelno == logging.WARNING and "Incomplete intake record" in record.getMessage()
            for record in caplog.records
        )
        assert "Patient intake collected: HCN=<unknown>, DOB=1985-06-01" in caplog.text


class TestRecordingComplete:

    def test_logs_recording_and_says_goodbye(self, client, twiml, caplog):
        caplog.set_level(logging.INFO)
        recording_url = "https://api.twilio.com/2010-04-01/Accounts/AC1/Recordings/RE1"
        root = twiml(
            client.post(
                "/voice/recording-complete?hcn=5551234567",
                data={"RecordingUrl": recording_url, "From": CALLER, "RecordingDuration": "12"},
            )
        )

        assert verbs(root) == ["Say", "Hangup"]
        assert root.find("Say").text == prompts.MESSAGE_THANKS
        assert f"Caller: {CALLER}, HCN: 5551234567, RecordingDuration: 12, RecordingUrl: {recording_url}" in caplog.text


def test_index_page(client):
    response = client.get("/")
    assert response.status_code == 200
    assert "IVR Server is running" in response.text
