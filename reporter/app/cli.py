"""
Command line helper for issuing tokens out of band.

    reporter-tokens access  --secret S [--subject NAME]
    reporter-tokens service --secret S [--subject NAME]

The access command prints both the token and the CSRF value; the two
must be configured together (REPORTER_ACCESS_TOKEN / REPORTER_CSRF_TOKEN).
"""

import argparse
import os
import sys
from typing import List, Optional

from reporter.app.core.config import Settings
from reporter.app.core.errors import SigningError
from reporter.app.services.tokens import TokenIssuer

DEFAULT_SUBJECT = Settings.model_fields["service_name"].default


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reporter-tokens",
        description="Issue tokens for the student report service.",
    )
    sub = parser.add_subparsers(dest="kind", required=True)

    access = sub.add_parser("access", help="15-minute access token + CSRF value")
    access.add_argument(
        "--secret",
        default=os.environ.get("REPORTER_ACCESS_TOKEN_SECRET", ""),
        help="signing secret (default: $REPORTER_ACCESS_TOKEN_SECRET)",
    )
    access.add_argument("--subject", default=DEFAULT_SUBJECT)

    service = sub.add_parser("service", help="non-expiring service token")
    service.add_argument(
        "--secret",
        default=os.environ.get("REPORTER_SERVICE_TOKEN_SECRET", ""),
        help="signing secret (default: $REPORTER_SERVICE_TOKEN_SECRET)",
    )
    service.add_argument("--subject", default=DEFAULT_SUBJECT)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        issuer = TokenIssuer(args.secret)
        if args.kind == "access":
            token, csrf_value = issuer.issue_access_token(args.subject)
            print(f"Access Token: {token}")
            print(f"CSRF Token: {csrf_value}")
        else:
            print(f"Service Token: {issuer.issue_service_token(args.subject)}")
    except SigningError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
