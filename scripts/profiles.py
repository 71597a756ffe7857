"""Command-line access to the CouchDB profile store.

This module serves as a CLI wrapper around couchprofile.core.profile_service.
Connection settings come from the environment (see couchprofile.config).

Usage:
    python scripts/profiles.py find --key username --value alice
"""
from __future__ import annotations
import argparse
import json
import logging
import sys
from pathlib import Path

SCRIPT_DIR = Path(__file__).parent
PROJECT_ROOT = SCRIPT_DIR.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from couchprofile.config import load_settings
from couchprofile.core.couchdb import CouchError, create_client_from_settings
from couchprofile.core.profile_service import CouchProfileService, WRITE_MODES


def _parse_record(raw: str) -> dict:
    try:
        record = json.loads(raw)
    except json.JSONDecodeError as e:
        raise argparse.ArgumentTypeError(f"invalid JSON record: {e}") from e
    if not isinstance(record, dict):
        raise argparse.ArgumentTypeError("record must be a JSON object")
    return record


def _confirmed(service: CouchProfileService, config, record: dict) -> bool:
    """Read a best-effort write back and compare it with what was sent."""
    hidden = {config.rev_attribute, "_rev"}
    stored = service.read(None, config.id_attribute, record.get(config.id_attribute))
    if len(stored) != 1:
        return False
    return all(stored[0].get(k, object()) == v for k, v in record.items() if k not in hidden)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="CouchDB profile store helper")
    parser.add_argument("--write-mode", choices=WRITE_MODES, default=None,
                        help="Override PROFILE_WRITE_MODE for this invocation")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="cmd")

    sub.add_parser("ping")

    sg = sub.add_parser("get")
    sg.add_argument("--id", required=True)
    sg.add_argument("--names", nargs="*", default=None)

    sf = sub.add_parser("find")
    sf.add_argument("--key", required=True)
    sf.add_argument("--value", required=True)
    sf.add_argument("--names", nargs="*", default=None)

    si = sub.add_parser("insert")
    si.add_argument("--json", dest="record", type=_parse_record, required=True)

    sp = sub.add_parser("put", help="Update a record, creating it when absent")
    sp.add_argument("--json", dest="record", type=_parse_record, required=True)

    sd = sub.add_parser("delete")
    sd.add_argument("--id", required=True)

    return parser


def main(argv: list[str] | None = None) -> None:
    """Command-line entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.cmd:
        parser.print_help()
        return

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_settings()
        if args.write_mode:
            config.write_mode = args.write_mode
        client = create_client_from_settings(config)
        service = CouchProfileService.from_settings(config, client=client)

        if args.cmd == "ping":
            print(json.dumps(client.ping()))
        elif args.cmd == "get":
            print(json.dumps(service.read(args.names, config.id_attribute, args.id), indent=2))
        elif args.cmd == "find":
            print(json.dumps(service.read(args.names, args.key, args.value), indent=2))
        elif args.cmd == "insert":
            service.insert(args.record)
            print(f"[insert] Record '{args.record.get(config.id_attribute, '<server-assigned>')}' created", file=sys.stderr)
        elif args.cmd == "put":
            service.update(args.record)
            doc_id = args.record.get(config.id_attribute)
            if not service.strict and not _confirmed(service, config, args.record):
                print(f"[put] Error: record '{doc_id}' was not persisted; rerun with --write-mode strict for the cause", file=sys.stderr)
                sys.exit(1)
            print(f"[put] Record '{doc_id}' written", file=sys.stderr)
        elif args.cmd == "delete":
            service.delete_by_id(args.id)
            print(f"[delete] Record '{args.id}' removed", file=sys.stderr)
    except CouchError as e:
        print(f"[{args.cmd}] Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
