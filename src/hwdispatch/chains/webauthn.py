"""FIDO2 / WebAuthn resident credentials stored on the device."""

from __future__ import annotations

from typing import Any, Dict

from hwdispatch.chains.common import list_field, project
from hwdispatch.core.device_session import DeviceSession
from hwdispatch.core.router import OperationRequest


def list_credentials(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    payload = project(
        session.webauthn_list_credentials(),
        required=("credentials",),
        default_error="Failed to list credentials",
    )
    credentials = list_field(payload, "credentials")
    return {"credentials": credentials, "count": len(credentials), "nextIndex": len(credentials)}


def add_credential(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    user_verification = request.get_bool("userVerification", True)
    resident_key = request.get_bool("residentKey", True)
    payload = project(
        session.webauthn_add_credential(
            str(request.require("rpId")),
            str(request.require("userId")),
            rp_name=str(request.get("rpName", "")),
            user_name=str(request.get("userName", "")),
            user_display_name=str(request.get("userDisplayName", "")),
            user_verification=user_verification,
            resident_key=resident_key,
        ),
        required=("credential",),
        default_error="Failed to add credential",
    )
    return {
        "created": True,
        "credential": payload["credential"],
        "options": {"userVerification": user_verification, "residentKey": resident_key},
    }


def remove_credential(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    index = request.require_int("credentialIndex", minimum=0)
    payload = project(session.webauthn_remove_credential(index), default_error="Failed to remove credential")
    return {
        "removed": True,
        "credentialIndex": index,
        "message": payload.get("message", f"Credential at index {index} removed"),
    }


def get_assertion(request: OperationRequest, session: DeviceSession) -> Dict[str, Any]:
    rp_id = str(request.require("rpId"))
    challenge = str(request.require("challenge"))
    payload = project(
        session.webauthn_get_assertion(rp_id, challenge, request.get_bool("userVerification", True)),
        required=("assertion",),
        default_error="Failed to get assertion",
    )
    return {
        "rpId": rp_id,
        "challenge": challenge,
        "assertion": payload["assertion"],
        "userVerified": bool(payload.get("userVerified")),
    }


HANDLERS = {
    "listCredentials": list_credentials,
    "addCredential": add_credential,
    "removeCredential": remove_credential,
    "getAssertion": get_assertion,
}
