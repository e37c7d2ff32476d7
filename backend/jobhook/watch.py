"""
Mail watcher entry point.

    jobhook-watch [--debug]
    python -m jobhook.watch [--debug]

Reads IMAP_* settings from the environment (.env supported), then watches
the mailbox until SIGINT/SIGTERM.
"""

import argparse
import logging
import signal
import sys
from typing import Optional, Sequence

from jobhook.services.imap_config import get_imap_listen_config
from jobhook.services.mail_transport import ImapMailbox
from jobhook.services.mail_watcher import MailWatcher, build_handler
from jobhook.services.seen_set import SeenSet

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jobhook-watch",
        description="Watch an IMAP mailbox and hand job offer emails to the offer pipeline.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Trace the IMAP protocol exchange (same as IMAP_DEBUG=1)",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        config = get_imap_listen_config()
    except ValueError as e:
        logger.error(str(e))
        return 1

    if args.debug:
        config = config.model_copy(update={"debug": True})

    watcher = MailWatcher(
        config,
        ImapMailbox.from_config(config),
        SeenSet(config.dedupe_max),
        build_handler(config),
    )

    def _shutdown(signum, _frame) -> None:
        logger.info(f"Received {signal.Signals(signum).name}, shutting down...")
        watcher.stop()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)

    try:
        watcher.run()
    except SystemExit as e:
        return int(e.code or 0)
    return 0


if __name__ == "__main__":
    sys.exit(main())
