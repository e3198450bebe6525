from __future__ import annotations

import argparse
import logging
import sys
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from listingmap.app import ModerationAction, moderate_listing, watch_listings
from listingmap.config import ConfigurationError, configure_logging, get_sync_config
from listingmap.domain.sync import USER_VISIBLE_ERRORS

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Keep a listing map in sync with the store")
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log debug output, including dropped change events",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    watch = subparsers.add_parser("watch", help="Follow listing changes on a headless map")
    watch.add_argument(
        "--admin",
        action="store_true",
        help="Use the privileged view that also shows pending listings",
    )
    watch.add_argument(
        "--duration",
        type=float,
        help="Stop after this many seconds (runs until Ctrl+C by default)",
    )

    moderate = subparsers.add_parser("moderate", help="Apply one moderation action")
    moderate.add_argument(
        "action",
        choices=[action.value for action in ModerationAction],
        help="Status transition to request",
    )
    moderate.add_argument("listing_id", help="Id of the listing to moderate")
    moderate.add_argument(
        "--reason",
        type=str,
        help="Reason recorded with reject/flag actions",
    )

    return parser.parse_args(list(argv))


def _validate(args: argparse.Namespace) -> None:
    if args.command == "watch" and args.duration is not None and args.duration <= 0:
        raise ValueError("--duration must be positive")
    if args.command == "moderate":
        action = ModerationAction(args.action)
        if action.needs_reason and not args.reason:
            raise ValueError(f"--reason is required for {action}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)
        _validate(parsed_args)
        sync_config = get_sync_config()
    except (ValueError, ConfigurationError):
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        if parsed_args.command == "watch":
            watch_listings(
                privileged=parsed_args.admin,
                duration_seconds=parsed_args.duration,
                sync_config=sync_config,
            )
        elif parsed_args.command == "moderate":
            state = moderate_listing(
                parsed_args.listing_id,
                ModerationAction(parsed_args.action),
                reason=parsed_args.reason,
                sync_config=sync_config,
            )
            log.info("Moderation of %s finished: %s", parsed_args.listing_id, state)
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301
    except ConfigurationError:
        log.exception("Configuration error")
        sys.exit(2)
    except USER_VISIBLE_ERRORS as exc:
        log.error("%s", exc)  # noqa: TRY400
        sys.exit(1)
    except Exception:
        log.exception("Fatal error during sync")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
