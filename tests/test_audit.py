from datetime import datetime, timezone
from unittest.mock import patch

import pytest
from assertpy import assert_that

from ipverify.audit import (
    SUBMISSION_HEADERS,
    VERIFICATION_HEADERS,
    build_row,
    clean_payload,
    record_submission,
)
from ipverify.verifier import VerificationResult

RESULT = VerificationResult(
    ip_masked="203.0.113.0/24",
    source="proxy",
    region_code="PA",
    region_name="Pennsylvania",
    postal="17101",
    match="Yes",
)

PAYLOAD = {
    "full_name": "Jane Doe",
    "phone": "5551234567",
    "email": "jane@example.com",
    "state": "Pennsylvania",
    "postal_code": "17101",
    "tcpa_consent_given": True,
    "date_of_exposure": None,
    "xxTrustedFormCertUrl": "https://cert.trustedform.com/abc",
    "xxTrustedFormPingUrl": "https://ping.trustedform.com/abc",
    "xxTrustedFormToken": "tok",
}


class _ListSink:
    def __init__(self):
        self.rows: list[list[str]] = []

    async def append_row(self, row: list[str]) -> None:
        self.rows.append(row)


class _BrokenSink:
    async def append_row(self, row: list[str]) -> None:
        raise RuntimeError("quota exceeded")


def test_headers_end_with_verification_columns():
    assert SUBMISSION_HEADERS[-len(VERIFICATION_HEADERS) :] == VERIFICATION_HEADERS
    assert_that(list(SUBMISSION_HEADERS)).does_not_contain_duplicates()


def test_clean_payload_keeps_only_cert_url():
    cleaned = clean_payload(PAYLOAD)

    assert_that(cleaned).contains_key("xxTrustedFormCertUrl")
    assert_that(cleaned).does_not_contain_key("xxTrustedFormPingUrl", "xxTrustedFormToken")


def test_build_row_orders_and_formats_cells():
    now = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)

    row = build_row(PAYLOAD, RESULT, now=now)
    cells = dict(zip(SUBMISSION_HEADERS, row))

    assert len(row) == len(SUBMISSION_HEADERS)
    assert cells["full_name"] == "Jane Doe"
    assert cells["tcpa_consent_given"] == "Yes"
    assert cells["date_of_exposure"] == ""
    assert cells["gender"] == ""
    assert cells["timestamp"] == "2026-10-18T12:00:00+00:00"
    assert cells["ip_masked"] == "203.0.113.0/24"
    assert cells["ip_source"] == "proxy"
    assert cells["ip_region_code"] == "PA"
    assert cells["state_match"] == "Yes"


def test_build_row_keeps_submitted_timestamp():
    row = build_row({**PAYLOAD, "timestamp": "2026-01-01T00:00:00Z"}, RESULT)

    assert dict(zip(SUBMISSION_HEADERS, row))["timestamp"] == "2026-01-01T00:00:00Z"


@pytest.mark.asyncio
async def test_record_submission_verifies_claimed_state():
    sink = _ListSink()
    with patch("ipverify.audit.verify_claimed_region", return_value=RESULT) as verify:
        row = await record_submission(sink, PAYLOAD, "203.0.113.9")

    verify.assert_awaited_once_with("Pennsylvania", "203.0.113.9")
    assert sink.rows == [row]


@pytest.mark.asyncio
async def test_record_submission_survives_sink_failure():
    with patch("ipverify.audit.verify_claimed_region", return_value=RESULT):
        row = await record_submission(_BrokenSink(), PAYLOAD, None)

    assert dict(zip(SUBMISSION_HEADERS, row))["state_match"] == "Yes"
