"""
Print entries from the archived and active webhook logs, oldest first.

Usage:
    python scripts/dump_webhook_log.py
    python scripts/dump_webhook_log.py --log-dir /var/log/payrelay --type invoice.payment_succeeded
    python scripts/dump_webhook_log.py --count
"""
import argparse
import json
import logging
import sys

from payrelay.config import get_settings
from payrelay.services.webhook_log import iter_log_entries

logging.basicConfig(level=logging.WARNING)


def main() -> int:
    parser = argparse.ArgumentParser(description="Dump the PayRelay webhook log")
    parser.add_argument("--log-dir", default=None, help="Defaults to WEBHOOK_LOG_DIR")
    parser.add_argument("--type", default=None, help="Only entries of this event type")
    parser.add_argument("--count", action="store_true", help="Print the number of entries only")
    args = parser.parse_args()

    log_dir = args.log_dir or get_settings().webhook_log_dir
    total = 0
    for entry in iter_log_entries(log_dir):
        if args.type and entry.get("type") != args.type:
            continue
        total += 1
        if not args.count:
            sys.stdout.write(json.dumps(entry) + "\n")

    if args.count:
        print(total)
    return 0


if __name__ == "__main__":
    sys.exit(main())
