"""Command line entry point for managing message templates."""

import argparse
import logging
import os
import re
import sys
from typing import Optional, Sequence

from patclient.buildinfo import APP_NAME, user_agent, version_string, version_string_short
from patclient.directories import data_dir, state_dir
from patclient.forms.manager import Manager
from patclient.forms.settings import FormsConfig

_log = logging.getLogger(__name__)
_INT_RE = re.compile(r"[+-]?[0-9]+")

TEMPLATES_USAGE = """subcommand [option ...]

subcommands:
  update             Update standard Winlink form templates.
  seqset [number]    Set the template sequence value.
"""

TEMPLATES_EXAMPLE = """
  update             Download the latest form templates from winlink.org.
  seqset 0           Reset the current sequence value to 0.
"""


def templates_command(manager: Manager, args: Sequence[str]) -> int:
    """Run a templates subcommand and return the exit status."""
    args = list(args)
    cmd, rest = (args[0], args[1:]) if args else ("", [])
    if cmd == "update":
        try:
            manager.update_form_templates()
        except (OSError, RuntimeError, ValueError) as exc:
            _log.error("%s", exc)
        return 0
    if cmd == "seqset":
        value = rest[0] if rest else ""
        if not _INT_RE.fullmatch(value):
            _log.error("invalid sequence number: %r", value)
            return 0
        try:
            manager.seq_set(int(value))
        except (OSError, ValueError) as exc:
            _log.error("%s", exc)
            return 1
        return 0
    print("Missing argument, try 'templates help'.")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Parse the command line and run the requested command."""
    parser = argparse.ArgumentParser(
        prog=APP_NAME.lower(),
        description=f"{APP_NAME} is a client for the Winlink 2000 Network.",
    )
    parser.add_argument("--mycall", default="", help="Your callsign (winlink user).")
    parser.add_argument("--forms", default=None, help="Path to forms directory.")
    sub = parser.add_subparsers(dest="command")
    templates = sub.add_parser(
        "templates",
        help="Manage message templates and HTML forms.",
        usage=f"%(prog)s {TEMPLATES_USAGE}",
        epilog="Examples:" + TEMPLATES_EXAMPLE,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    templates.add_argument("args", nargs=argparse.REMAINDER)
    sub.add_parser("version", help="Print the application version.")

    ns = parser.parse_args(argv)
    if ns.command is None:
        parser.print_help(sys.stderr)
        return 1
    if ns.command == "version":
        print(f"{APP_NAME} {version_string()}")
        return 0

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
    forms_path = os.path.normpath(ns.forms or os.path.join(data_dir(), "Standard_Forms"))
    config = FormsConfig(
        forms_path=forms_path,
        sequence_path=os.path.join(state_dir(), "template-sequence-number.json"),
        sequence_format="%03d",
        my_call=ns.mycall.upper(),
        app_version=f"{APP_NAME} {version_string_short()}",
        user_agent=user_agent(),
    )
    with Manager(config) as manager:
        return templates_command(manager, ns.args)


if __name__ == "__main__":
    sys.exit(main())