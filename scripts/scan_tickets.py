#!/usr/bin/env python3
"""
Venue Check-in Scanner

Reads decoded QR payloads, one per line, and records each one against the
API. Most USB barcode readers act as a keyboard, so their output can be
piped or typed straight in.

Usage:
    python scripts/scan_tickets.py --event-id <uuid>
    python scripts/scan_tickets.py --event-id <uuid> --base-url http://venue-api:8000 --operator gate-2
    cat decoded.txt | python scripts/scan_tickets.py --event-id <uuid>
"""
import argparse
import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from mehfil.scanner import ScannerClient, ScanDebouncer  # noqa: E402


class Colors:
    """ANSI color codes for terminal output"""
    GREEN = '\033[92m'
    RED = '\033[91m'
    YELLOW = '\033[93m'
    BLUE = '\033[94m'
    RESET = '\033[0m'


STATUS_STYLE = {
    "recorded": (Colors.GREEN, "✓"),
    "already_scanned": (Colors.YELLOW, "!"),
    "wrong_event": (Colors.YELLOW, "!"),
    "invalid_ticket": (Colors.RED, "✗"),
    "unreadable": (Colors.RED, "✗"),
    "error": (Colors.RED, "✗"),
}


def main():
    parser = argparse.ArgumentParser(description="Record ticket scans for an event")
    parser.add_argument("--event-id", required=True, help="Event being checked in")
    parser.add_argument("--base-url", default="http://localhost:8000",
                        help="API base URL (default: http://localhost:8000)")
    parser.add_argument("--operator", default=None,
                        help="Operator name stored as checkedInBy")
    parser.add_argument("--cooldown", type=float, default=None,
                        help="Seconds to ignore a repeated read of the same code")

    args = parser.parse_args()

    client = ScannerClient(
        base_url=args.base_url,
        event_id=args.event_id,
        operator=args.operator,
        debouncer=ScanDebouncer(args.cooldown),
    )

    print(f"{Colors.BLUE}→{Colors.RESET} Scanning for event {args.event_id} (Ctrl-D to stop)")
    try:
        for line in sys.stdin:
            text = line.strip()
            if not text:
                continue
            outcome = client.handle(text)
            if outcome.status == "ignored":
                continue
            color, mark = STATUS_STYLE.get(outcome.status, (Colors.RED, "✗"))
            print(f"{color}{mark}{Colors.RESET} {outcome.message}")
    except KeyboardInterrupt:
        pass
    finally:
        client.close()

    print(f"\nRecorded {len(client.entries)} scan(s) this session")


if __name__ == "__main__":
    main()
