"""Command-line client for saving and resuming work without a server."""
from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Sequence

from common.config import ResumeSettings
from state.models import FIELD_KEYS

from .handler import ResumeService


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="resume", description="Save and resume work with Resume Codes.")
    parser.add_argument("--store", type=str, default=None, help="Path of the JSON file backing the device store.")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("show", help="Print the saved fields as JSON.")

    p_set = sub.add_parser("set", help="Set one saved field.")
    p_set.add_argument("field", choices=FIELD_KEYS)
    p_set.add_argument("value")

    sub.add_parser("save", help="Create a Resume Code and resume link.")
    sub.add_parser("code", help="Save under a short code (this device only).")
    sub.add_parser("url", help="Print a resume link for the current work.")

    p_resume = sub.add_parser("resume", help="Restore from a Resume Code, link or short code.")
    p_resume.add_argument("input", nargs="?", default="")

    sub.add_parser("reset", help="Clear saved work and short codes on this device.")
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point."""
    args = _build_parser().parse_args(argv)
    try:
        settings = ResumeSettings.from_env(store_path=args.store)
    except RuntimeError as ex:
        print(str(ex), file=sys.stderr)
        return 2
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")

    service = ResumeService.from_settings(settings)

    if args.command == "show":
        print(json.dumps(service.snapshot.build().to_mapping(), indent=2, ensure_ascii=False))
        return 0

    if args.command == "set":
        service.snapshot.apply({args.field: args.value})
        return 0

    if args.command in ("save", "code"):
        result = service.save() if args.command == "save" else service.save_short_code()
        print(result.message)
        print(result.token)
        if result.url:
            print(result.url)
        return 0

    if args.command == "url":
        print(service.link.build_resume_url(service.codec.encode(service.snapshot.build())))
        return 0

    if args.command == "resume":
        outcome = service.resume(args.input)
        print(outcome.message, file=sys.stdout if outcome.ok else sys.stderr)
        return 0 if outcome.ok else 1

    if args.command == "reset":
        print(service.reset())
        return 0

    return 2


if __name__ == "__main__":
    sys.exit(main())
