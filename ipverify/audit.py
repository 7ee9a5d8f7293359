"""Audit rows for intake submissions, enriched with the verification outcome.

The store itself is an external collaborator reached through ``RowSink``;
a failing sink is logged and never fails the submission.
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Protocol

from loguru import logger

from ipverify.logs import get_utcnow
from ipverify.verifier import VerificationResult, verify_claimed_region

logger = logger.bind(topic="audit")

FORM_HEADERS = (
    "full_name",
    "phone",
    "email",
    "gender",
    "date_of_birth",
    "address",
    "city",
    "state",
    "postal_code",
    "country_diagnosis",
    "date_of_exposure",
    "brief_description_of_your_situation",
    "tcpa_consent_given",
    "xxTrustedFormCertUrl",
    "timestamp",
)

# column -> VerificationResult field
VERIFICATION_COLUMNS = {
    "ip_masked": "ip_masked",
    "ip_source": "source",
    "ip_region_code": "region_code",
    "ip_region_name": "region_name",
    "ip_postal": "postal",
    "state_match": "match",
}

VERIFICATION_HEADERS = tuple(VERIFICATION_COLUMNS)
SUBMISSION_HEADERS = FORM_HEADERS + VERIFICATION_HEADERS

TRUSTED_FORM_PREFIX = "xxTrustedForm"
TRUSTED_FORM_CERT_FIELD = "xxTrustedFormCertUrl"


class RowSink(Protocol):
    async def append_row(self, row: list[str]) -> None: ...


def clean_payload(payload: Mapping[str, Any]) -> dict[str, Any]:
    """Drop the extra TrustedForm fields, keeping only the certificate URL."""
    return {
        key: value
        for key, value in payload.items()
        if not key.startswith(TRUSTED_FORM_PREFIX) or key == TRUSTED_FORM_CERT_FIELD
    }


def _cell(value: Any) -> str:
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if value is None:
        return ""
    return str(value)


def build_row(
    payload: Mapping[str, Any],
    result: VerificationResult,
    *,
    now: datetime | None = None,
) -> list[str]:
    """Flatten a submission and its verification into SUBMISSION_HEADERS order."""
    values = clean_payload(payload)
    if not values.get("timestamp"):
        values["timestamp"] = (now or get_utcnow()).isoformat()

    verification = result.model_dump()
    for column, field in VERIFICATION_COLUMNS.items():
        values[column] = verification[field]

    return [_cell(values.get(header)) for header in SUBMISSION_HEADERS]


async def record_submission(
    sink: RowSink,
    payload: Mapping[str, Any],
    client_ip: str | None,
) -> list[str]:
    """Verify the submitted state, then append the audit row.

    Returns:
        The row that was (or would have been) appended
    """
    result = await verify_claimed_region(payload.get("state"), client_ip)
    row = build_row(payload, result)

    try:
        await sink.append_row(row)
    except Exception as e:
        logger.error(
            "Failed to append audit row",
            error=str(e),
            error_type=type(e).__name__,
            state_match=result.match,
        )
    else:
        logger.info("Audit row appended", source=result.source, state_match=result.match)

    return row
