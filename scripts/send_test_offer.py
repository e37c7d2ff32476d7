#!/usr/bin/env python3
"""
Dev helper: send a test job offer email to the local jobhook backend.

Builds a webhook payload around an offer email HTML (a real one from
--file, or a generated sample) and POST-s it to /api/webhook. With
--success the sample is a job-assignment confirmation and goes to
/api/success instead.

Usage
-----
# Sample offer for zip 60532 (in the service area), targeting localhost:8000
python scripts/send_test_offer.py

# Sample offer outside the service area (expect status "skipped")
python scripts/send_test_offer.py --zip 90210

# Send a saved offer email
python scripts/send_test_offer.py --file samples/offer.html

# PascalCase keys (Subject/HtmlBody/TextBody), as Postmark sends them
python scripts/send_test_offer.py --pascal

# Job-assignment email to /api/success
python scripts/send_test_offer.py --success

Note: the sample offer's accept link points at the real accept endpoint
with a fake token; an eligible sample is claimed for real (and fails).
Use --dry-run to only print the payload.
"""

import argparse
import json
import sys
import textwrap
from pathlib import Path

import httpx
from dotenv import load_dotenv


# ---------------------------------------------------------------------------
# Sample emails
# ---------------------------------------------------------------------------

_SAMPLE_TOKEN = "eyJhbGciOiJIUzI1NiJ9.eyJqb2IiOiJ0ZXN0In0.c2FtcGxl"


def _sample_offer_html(zip_code: str) -> str:
    return textwrap.dedent(f"""\
        <html><body>
          <h2>New job available near you</h2>
          <ul>
            <li>Address: 1611 Lacey Ave, Lisle, Illinois {zip_code}</li>
            <li>Appliance: Refrigerator</li>
            <li>Appliance: Dishwasher</li>
          </ul>
          <a href="https://login.theappliancerepairmen.com/job/accept/{_SAMPLE_TOKEN}">Accept Job</a>
          <a href="https://login.theappliancerepairmen.com/job/decline/{_SAMPLE_TOKEN}">Decline Job</a>
        </body></html>
    """)


def _sample_success_html() -> str:
    return textwrap.dedent("""\
        <html><body>
          <h2>We would like to inform you that a job has been assigned to Jane Doe:</h2>
          <ul>
            <li><b>Address:</b> 1611 Lacey Ave, Lisle, Illinois 60532</li>
            <li><b>Reference No.:</b> R-12345</li>
            <li><b>Appointment Date:</b> 2026-10-21 09:00</li>
            <li><b>Appliance:</b> Refrigerator</li>
            <li><b>Brand:</b> Whirlpool</li>
            <li><b>Service Fee:</b> $89</li>
          </ul>
        </body></html>
    """)


def _build_payload(subject: str, html: str, pascal: bool) -> dict:
    if pascal:
        return {"Subject": subject, "HtmlBody": html, "TextBody": ""}
    return {"subject": subject, "html": html, "text": ""}


# ---------------------------------------------------------------------------
# Pretty printer
# ---------------------------------------------------------------------------

def _print_response(response: httpx.Response) -> None:
    status = response.status_code
    symbol = "OK" if status == 200 else "FAIL"
    print(f"\n[{symbol}] HTTP {status}")
    try:
        print(json.dumps(response.json(), indent=2))
    except ValueError:
        print(response.text)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main() -> int:
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")
    load_dotenv(project_root / "backend" / ".env")

    parser = argparse.ArgumentParser(
        prog="send_test_offer.py",
        description="Send a test job offer email to the jobhook backend.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            Examples:
              python scripts/send_test_offer.py
              python scripts/send_test_offer.py --zip 90210
              python scripts/send_test_offer.py --file samples/offer.html
              python scripts/send_test_offer.py --success
        """),
    )
    parser.add_argument(
        "--url",
        default="http://localhost:8000",
        help="Backend base URL (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--file",
        default=None,
        metavar="PATH",
        help="HTML file to use as the email body. A sample is generated if omitted.",
    )
    parser.add_argument(
        "--zip",
        dest="zip_code",
        default="60532",
        help="Zip code for the generated sample offer (default: 60532)",
    )
    parser.add_argument(
        "--subject",
        default="New Job Offer",
        help='Email subject (default: "New Job Offer")',
    )
    parser.add_argument(
        "--success",
        action="store_true",
        help="Send a job-assignment email to /api/success instead.",
    )
    parser.add_argument(
        "--pascal",
        action="store_true",
        help="Use Subject/HtmlBody/TextBody keys.",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the payload JSON without sending it.",
    )

    args = parser.parse_args()

    if args.file:
        file_path = Path(args.file)
        if not file_path.exists():
            print(f"ERROR: File not found: {file_path}", file=sys.stderr)
            return 1
        html = file_path.read_text(encoding="utf-8")
        print(f"Using HTML file: {file_path} ({len(html):,} chars)")
    elif args.success:
        html = _sample_success_html()
        print("No --file specified; using generated job-assignment email")
    else:
        html = _sample_offer_html(args.zip_code)
        print(f"No --file specified; using generated offer email (zip {args.zip_code})")

    payload = _build_payload(args.subject, html, args.pascal)
    path = "/api/success" if args.success else "/api/webhook"
    endpoint = f"{args.url.rstrip('/')}{path}"

    print(f"\nEndpoint : {endpoint}")
    print(f"Subject  : {args.subject}")
    print(f"Keys     : {', '.join(payload)}")

    if args.dry_run:
        print("\n[DRY RUN] Payload:")
        print(json.dumps(payload, indent=2))
        return 0

    try:
        response = httpx.post(endpoint, json=payload, timeout=60.0)
    except httpx.HTTPError as e:
        print(f"\nERROR: Request failed: {e}", file=sys.stderr)
        return 1

    _print_response(response)
    return 0 if response.status_code == 200 else 1


if __name__ == "__main__":
    sys.exit(main())
