# Overview: Stand-in for the government e-document clearing service.

"""
GIB gateway stub.

No network calls are made. Identifiers are derived from the document number
so the same document always gets the same uuids. An instance created with
reject=True answers every status check with a rejection.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from flask import current_app

SEND_OK_CODE = "1000"
APPROVED_CODE = "1200"
REJECTED_CODE = "1300"

_NAMESPACE = uuid.UUID("6f1c6d4e-9a51-4c1e-8d0a-2b7f3e5c9a10")


@dataclass(frozen=True)
class GibSendResult:
    success: bool
    gib_uuid: str
    envelope_uuid: str
    response_code: str
    response_message: str


@dataclass(frozen=True)
class GibStatusResult:
    status: str  # approved | rejected
    response_code: str
    response_message: str


class GibGateway:
    def __init__(self, reject: bool = False, reject_message: str = "Document rejected by the clearing service"):
        self.reject = reject
        self.reject_message = reject_message

    def send_document(self, document_type: str, document_number: str, xml_content: str) -> GibSendResult:
        gib_uuid = uuid.uuid5(_NAMESPACE, f"{document_type}:{document_number}:document")
        envelope_uuid = uuid.uuid5(_NAMESPACE, f"{document_type}:{document_number}:envelope")
        return GibSendResult(
            success=True,
            gib_uuid=str(gib_uuid).upper(),
            envelope_uuid=str(envelope_uuid).upper(),
            response_code=SEND_OK_CODE,
            response_message="Document sent",
        )

    def check_status(self, gib_uuid: str) -> GibStatusResult:
        if self.reject:
            return GibStatusResult(status="rejected", response_code=REJECTED_CODE, response_message=self.reject_message)
        return GibStatusResult(status="approved", response_code=APPROVED_CODE, response_message="Document approved")


def get_gateway() -> GibGateway:
    """The gateway installed on the app by create_app (tests may replace it)."""
    return current_app.extensions["gib_gateway"]
