#!/usr/bin/env python3
"""
RelayGate Command Line Interface

Usage:
    relaygate verify --log <export.json> --trust-store <trust_store.json>
    relaygate state --log <export.json> --initial-owner <identity>
    relaygate keygen --signing-key <file> --trust-store <file> [--kid <kid>]
"""

import argparse
import json
import sys
from typing import Any, Dict, List


def load_json(path: str):
    """Load JSON from file."""
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def export_records(entries: List[Dict[str, Any]]):
    """Pull records out of either export shape (signed chain or plain)."""
    from relaygate.records import record_from_dict

    records = []
    for entry in entries:
        if "record_json" in entry:
            records.append(record_from_dict(json.loads(entry["record_json"])))
        else:
            records.append(record_from_dict(entry["record"]))
    return records


def cmd_verify(args):
    """Verify a signed event log export."""
    from relaygate.verifier import verify_event_log

    result = verify_event_log(load_json(args.log), load_json(args.trust_store))

    if result.valid:
        print(f"✓ VALID: {result.entries} entries, head {result.head_entry_hash}")
        return 0
    print(f"✗ INVALID at seq {result.seq}: {result.reason}")
    return 1


def cmd_state(args):
    """Replay an export and print the restored relay state."""
    from relaygate.errors import LogIntegrityError
    from relaygate.event_log import InMemoryEventLog
    from relaygate.identity import parse_identity
    from relaygate.relay import restore_relay
    from relaygate.security import ValidationError

    try:
        owner = parse_identity(args.initial_owner, "initial-owner")
        records = export_records(load_json(args.log))
        relay = restore_relay(owner, records, InMemoryEventLog())
    except (ValidationError, ValueError, LogIntegrityError) as e:
        print(f"✗ {e}", file=sys.stderr)
        return 1

    print(json.dumps(relay.state().to_dict(), indent=2))
    return 0


def cmd_keygen(args):
    """Generate a log signing key and trust store."""
    from relaygate.keys import generate_key_files

    generate_key_files(args.signing_key, args.trust_store, kid=args.kid)
    print(f"Signing key written to: {args.signing_key}")
    print(f"Trust store written to: {args.trust_store}")
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="relaygate",
        description="RelayGate authorization-gated relay tooling"
    )
    subparsers = parser.add_subparsers(dest="command")

    verify_parser = subparsers.add_parser("verify", help="Verify an exported event log")
    verify_parser.add_argument("-l", "--log", required=True, help="Event log export (GET /event_log)")
    verify_parser.add_argument("-t", "--trust-store", required=True, help="Trust store JSON")

    state_parser = subparsers.add_parser("state", help="Replay an export into relay state")
    state_parser.add_argument("-l", "--log", required=True, help="Event log export (GET /event_log)")
    state_parser.add_argument("-o", "--initial-owner", required=True, help="Identity that constructed the relay")

    keygen_parser = subparsers.add_parser("keygen", help="Generate signing key and trust store")
    keygen_parser.add_argument("--signing-key", default="secrets/relaygate_signing_key.json")
    keygen_parser.add_argument("--trust-store", default="trust/trust_store.json")
    keygen_parser.add_argument("-k", "--kid", default="relaygate-log-01")

    args = parser.parse_args(argv)

    if args.command == "verify":
        return cmd_verify(args)
    elif args.command == "state":
        return cmd_state(args)
    elif args.command == "keygen":
        return cmd_keygen(args)
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())
