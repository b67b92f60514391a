# =============================================================================
# relay-mailer Command Line
# =============================================================================
# Sends a message (or a saved EML file) through a configured relay account.
#
#   relay-mailer send --to "bob@example.com; carol@example.com" \
#       --subject "March report" --body-file report.txt --attach report.pdf
#
#   relay-mailer send-eml --to bob@example.com saved.eml
#
# Accounts come from config.toml (see relay_mailer.config); passwords from
# the system keyring.
# =============================================================================

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from relay_mailer import __app_name__, __version__
from relay_mailer.config import Config, ConfigError, print_paths
from relay_mailer.core import Attachment
from relay_mailer.errors import MailerError
from relay_mailer.smtp import Mailer

logger = logging.getLogger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse command-line arguments.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        prog=__app_name__,
        description="relay-mailer: send mail through an authenticated SMTP relay",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "--paths",
        action="store_true",
        help="Print configuration paths and exit",
    )

    parser.add_argument(
        "--config",
        type=Path,
        help="Path to config file (default: XDG config location)",
    )

    parser.add_argument(
        "--account",
        help="Account to send from (default: general.default_account)",
    )

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode (verbose logging)",
    )

    commands = parser.add_subparsers(dest="command")

    send = commands.add_parser("send", help="Compose and send a message")
    send.add_argument("--to", required=True, help="Recipients, separated by ';'")
    send.add_argument("--subject", required=True, help="Subject text")
    body = send.add_mutually_exclusive_group(required=True)
    body.add_argument("--body", help="Body text (plain or HTML)")
    body.add_argument("--body-file", type=Path, help="Read the body from a file")
    send.add_argument(
        "--attach",
        type=Path,
        action="append",
        default=[],
        help="File to attach (repeatable)",
    )

    send_eml = commands.add_parser("send-eml", help="Relay a saved EML file")
    send_eml.add_argument("--to", required=True, help="Recipients, separated by ';'")
    send_eml.add_argument("eml", type=Path, help="EML file to send")

    return parser.parse_args(argv)


async def run(args: argparse.Namespace, config: Config) -> None:
    """Connect with the selected account and perform the requested command."""
    account = config.get_account(args.account)

    async with await Mailer.for_account(account) as mailer:
        if args.command == "send":
            if args.body_file is not None:
                text = args.body_file.read_text(encoding="utf-8")
            else:
                text = args.body
            attachments = [Attachment.from_path(path) for path in args.attach]
            await mailer.send(args.to, args.subject, text, *attachments)
        else:
            await mailer.send_eml(args.to, args.eml)


def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for relay-mailer.

    Returns:
        Exit code (0 for success, non-zero for errors).
    """
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Handle --paths flag
    if args.paths:
        print_paths()
        return 0

    if args.command is None:
        print(f"{__app_name__}: nothing to do (try 'send' or 'send-eml')", file=sys.stderr)
        return 1

    try:
        config = Config.load(args.config)
        asyncio.run(run(args, config))
    except ConfigError as e:
        print(f"Config error: {e}", file=sys.stderr)
        return 1
    except MailerError as e:
        logger.debug("Send failed", exc_info=True)
        print(e.describe() if args.debug else str(e), file=sys.stderr)
        return 1
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
