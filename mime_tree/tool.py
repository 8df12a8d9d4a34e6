"""Utilities for summarizing MIME trees and fetching raw Gmail messages."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from cryptography import x509

from . import parse_message
from .decoder import b64url_decode, decode_header_str, parse_addr_list
from .imap import iter_part_specifiers
from .log import get_logger, log_event
from .signed import SignedBody
from .types import Entity, LeafBody

SCOPES: Sequence[str] = ("https://www.googleapis.com/auth/gmail.readonly",)

log = get_logger(__name__)


def _part_summary(spec: str, entity: Entity) -> Dict[str, Any]:
    disposition = entity.content_disposition
    size = len(entity.body.data) if isinstance(entity.body, LeafBody) else None
    return {
        "part": spec,
        "content_type": entity.mime_type,
        "disposition": disposition.disposition if disposition else None,
        "filename": disposition.filename if disposition else None,
        "size": size,
    }


def _signature_summary(
    spec: str,
    body: SignedBody,
    trusted: Optional[Sequence[x509.Certificate]],
) -> Dict[str, Any]:
    valid = body.verify_signature(trusted)
    certs = body.get_certificates() or []
    signers = [c.subject.rfc4514_string() for c in certs]
    log_event(log, "signature_checked", part=spec, valid=valid, certificates=len(certs))
    return {"part": spec, "protocol": body.protocol, "valid": valid, "signers": signers}


def summarize_entity_tree(
    root: Entity,
    *,
    trusted: Optional[Sequence[x509.Certificate]] = None,
) -> Dict[str, Any]:
    """
    Describe a parsed message: top-level headers, every part with its IMAP
    part specifier, and the verification outcome of each signed body.
    """
    headers = root.headers
    parts: List[Dict[str, Any]] = []
    signatures: List[Dict[str, Any]] = []
    for spec, entity in iter_part_specifiers(root):
        parts.append(_part_summary(spec, entity))
        if isinstance(entity.body, SignedBody):
            signatures.append(_signature_summary(spec, entity.body, trusted))
    return {
        "subject": decode_header_str(headers.get("Subject")),
        "from": decode_header_str(headers.get("From")),
        "to": parse_addr_list(decode_header_str(headers.get("To"))),
        "parts": parts,
        "signatures": signatures,
    }


def summarize_raw_message(
    raw: bytes,
    *,
    trusted: Optional[Sequence[x509.Certificate]] = None,
) -> Dict[str, Any]:
    return summarize_entity_tree(parse_message(raw), trusted=trusted)


def summarize_message_json(
    msg: Dict[str, Any],
    *,
    trusted: Optional[Sequence[x509.Certificate]] = None,
) -> Dict[str, Any]:
    """
    Summarize a Gmail API message fetched with format="raw".
    """
    if "raw" not in msg:
        raise ValueError("Gmail message has no 'raw' payload; fetch it with format='raw'.")
    summary = summarize_raw_message(b64url_decode(msg["raw"]), trusted=trusted)
    summary["message_id"] = msg.get("id", "")
    summary["thread_id"] = msg.get("threadId", "")
    return summary


def _ensure_google_imports():
    from google.auth.transport.requests import Request
    from google.oauth2.credentials import Credentials
    from google_auth_oauthlib.flow import InstalledAppFlow
    from googleapiclient.discovery import build

    return Request, Credentials, InstalledAppFlow, build


def build_gmail_service(
    *,
    token_path: str | Path = "token.json",
    client_secret_path: str | Path = "client_secret.json",
):
    """
    Read-only Gmail API client. Cached OAuth tokens are refreshed; without
    usable tokens the browser consent flow runs and the new token is saved.
    """
    Request, Credentials, InstalledAppFlow, build = _ensure_google_imports()
    token_path, client_secret_path = Path(token_path), Path(client_secret_path)

    creds = None
    if token_path.exists():
        creds = Credentials.from_authorized_user_file(str(token_path), SCOPES)
    if creds is None or not creds.valid:
        if creds is not None and creds.expired and creds.refresh_token:
            creds.refresh(Request())
        elif client_secret_path.exists():
            flow = InstalledAppFlow.from_client_secrets_file(str(client_secret_path), SCOPES)
            creds = flow.run_local_server(port=0)
        else:
            raise FileNotFoundError(f"No OAuth client secret at {client_secret_path}.")
        token_path.write_text(creds.to_json())
        log_event(log, "gmail_token_saved", path=str(token_path))

    return build("gmail", "v1", credentials=creds, cache_discovery=False)


def _get_raw(gmail_service, message_id: str) -> Dict[str, Any]:
    return (
        gmail_service.users()
        .messages()
        .get(userId="me", id=message_id, format="raw")
        .execute()
    )


def fetch_raw_message(gmail_service, message_id: str) -> bytes:
    """
    Download a message and return its RFC 5322 bytes.
    """
    return b64url_decode(_get_raw(gmail_service, message_id).get("raw", ""))


def read_message_summary(
    message_id: str,
    *,
    gmail_service=None,
    token_path: str | Path = "token.json",
    client_secret_path: str | Path = "client_secret.json",
    trusted: Optional[Sequence[x509.Certificate]] = None,
) -> Dict[str, Any]:
    """
    Fetch a message, build its MIME tree and summarize parts and signatures.
    Provide an authenticated gmail_service to reuse connections, or let this
    helper build one from the OAuth credentials on disk.
    """
    if gmail_service is None:
        gmail_service = build_gmail_service(
            token_path=token_path, client_secret_path=client_secret_path
        )
    return summarize_message_json(_get_raw(gmail_service, message_id), trusted=trusted)


__all__ = [
    "SCOPES",
    "build_gmail_service",
    "fetch_raw_message",
    "read_message_summary",
    "summarize_entity_tree",
    "summarize_message_json",
    "summarize_raw_message",
]
