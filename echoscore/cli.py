"""CLI commands for echoscore."""

import argparse
import sys

from sqlalchemy.orm import Session

from echoscore.database import SessionLocal
from echoscore.seed_protocols import seed_protocols
from echoscore.services.errors import EvaluationError
from echoscore.services.taxonomy_service import taxonomy_service


def create_protocol(name: str) -> None:
    """Create an empty protocol from its display name."""
    db: Session = SessionLocal()

    try:
        protocol = taxonomy_service.create_protocol(db, name)
        print(f"Protocol created successfully: {protocol.key} ({protocol.name})")
    except EvaluationError as e:
        print(f"Error: {e}")
        sys.exit(1)
    finally:
        db.close()


def main():
    parser = argparse.ArgumentParser(description="echoscore CLI")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("seed", help="Load the built-in protocol catalogue")

    create_protocol_parser = subparsers.add_parser(
        "create-protocol", help="Create a protocol"
    )
    create_protocol_parser.add_argument(
        "--name", required=True, help="Protocol display name; the key is derived from it"
    )

    args = parser.parse_args()

    if args.command == "seed":
        seed_protocols()
    elif args.command == "create-protocol":
        create_protocol(args.name)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
