"""Inspect a message: print its parts, part specifiers and signature status."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from cryptography import x509

from mime_tree.errors import FormatError
from mime_tree.log import configure_logging
from mime_tree.tool import read_message_summary, summarize_message_json, summarize_raw_message


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Summarize the MIME structure of a message.")
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("path", nargs="?", help="An .eml file or a Gmail API message saved as JSON (format=raw).")
    source.add_argument("--gmail-id", help="Fetch this message from Gmail instead of reading a file.")
    parser.add_argument(
        "--trusted",
        nargs="*",
        default=None,
        help="PEM files with trusted certificates; signers must chain to one of them.",
    )
    parser.add_argument("--token", default="token.json", help="Gmail OAuth token cache (default: %(default)s).")
    parser.add_argument(
        "--client-secret",
        default="client_secret.json",
        help="Gmail OAuth client secret (default: %(default)s).",
    )
    parser.add_argument("--log-level", default=None, help="Overrides MIME_TREE_LOG_LEVEL.")
    return parser


def _load_trusted(paths: list[str] | None) -> list[x509.Certificate] | None:
    if paths is None:
        return None
    certs: list[x509.Certificate] = []
    for p in paths:
        certs.extend(x509.load_pem_x509_certificates(Path(p).read_bytes()))
    return certs


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    trusted = _load_trusted(args.trusted)
    source = args.gmail_id or args.path
    try:
        if args.gmail_id:
            summary = read_message_summary(
                args.gmail_id,
                token_path=args.token,
                client_secret_path=args.client_secret,
                trusted=trusted,
            )
        else:
            data = Path(args.path).read_bytes()
            if data.lstrip().startswith(b"{"):
                summary = summarize_message_json(json.loads(data), trusted=trusted)
            else:
                summary = summarize_raw_message(data, trusted=trusted)
    except FormatError as exc:
        print(f"Cannot parse {source}: {exc}", file=sys.stderr)
        return 1

    json.dump(summary, sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
