"""Tests for the custom structlog processors."""

import pytest

from stratix.core.logging import SERVICE_NAME, add_service, redact_payloads

pytestmark = pytest.mark.unit


def test_form_payloads_reduced_to_keys():
    event = redact_payloads(None, "info", {"event": "x", "step_data": {"full_name": "Ana", "job_title": "CEO"}})

    assert event["step_data"] == ["full_name", "job_title"]


def test_non_dict_payloads_redacted():
    event = redact_payloads(None, "info", {"event": "x", "token": "eyJ..."})

    assert event["token"] == "[redacted]"


def test_other_keys_untouched():
    event = redact_payloads(None, "info", {"event": "x", "step_number": 2})

    assert event == {"event": "x", "step_number": 2}


def test_service_name_added():
    assert add_service(None, "info", {"event": "x"})["service"] == SERVICE_NAME
