"""
Pytest configuration and fixtures for the IVR webhook tests.
"""

import xml.etree.ElementTree as ET

import pytest
from fastapi.testclient import TestClient

from answer_phone import app
from call_flow.settings import IVRSettings, get_settings
from modules.twilio_webhook import get_hcn_validator


class FakeValidator:
    """Stands in for the patient lookup and records every number it was asked about."""

    def __init__(self, result=True, error=None):
        self.result = result
        self.error = error
        self.calls = []

    async def validate(self, hcn):
        self.calls.append(hcn)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def settings():
    return IVRSettings()


@pytest.fixture
def validator():
    return FakeValidator()


@pytest.fixture
def client(settings, validator):
    app.dependency_overrides[get_settings] = lambda: settings
    app.dependency_overrides[get_hcn_validator] = lambda: validator
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def use_settings():
    """Swap the settings the app sees for the rest of the test."""

    def _use(**overrides):
        new_settings = IVRSettings(**overrides)
        app.dependency_overrides[get_settings] = lambda: new_settings
        return new_settings

    return _use


@pytest.fixture
def twiml():
    """Parse a webhook response body into an ElementTree <Response> root."""

    def _parse(response):
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/xml")
        root = ET.fromstring(response.content)
        assert root.tag == "Response"
        return root

    return _parse
