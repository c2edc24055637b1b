#!/usr/bin/env python3
"""
artmeta CLI

Command-line interface for a registry directory:
  artmeta show - Print the collection manifest
  artmeta create-attribute - Create an attribute with initial traits
  artmeta add-traits - Append a batch of traits
  artmeta add-trait - Append one trait with an explicit ID
  artmeta update-cid - Record a new CID for one attribute
  artmeta update-cids - Record CIDs for every attribute ("" skips)
  artmeta events - List the audit log

Usage:
  artmeta --caller alice create-attribute Background --cid <cid> --script gen-v1 \
      -t Forest:common -t Desert:rare
  artmeta --caller alice add-trait 0 3 Ocean legendary
  artmeta --caller alice update-cids <cid0> "" <cid2>
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Tuple

from .audit import ActorStore
from .errors import RegistryError
from .registry import MetadataRegistry

SIGNER_USERNAME = "registry"


def parse_trait(trait_str: str) -> Tuple[str, str]:
    """
    Parse trait specification: name:rarity

    Returns (name, rarity)
    """
    if ":" not in trait_str:
        raise ValueError(f"Invalid trait format: {trait_str}. Expected name:rarity")
    name, rarity = trait_str.rsplit(":", 1)
    return name, rarity


def parse_traits(trait_list: List[str]) -> Tuple[List[str], List[str]]:
    """
    Parse list of trait specifications.

    Returns (names, rarities)
    """
    names = []
    rarities = []
    for trait_str in trait_list or []:
        name, rarity = parse_trait(trait_str)
        names.append(name)
        rarities.append(rarity)
    return names, rarities


def open_registry(args, writable: bool = False) -> MetadataRegistry:
    """
    Open the registry named on the command line.

    Only writable registries get a signer; the signing key is generated
    on first use. Read-only commands touch nothing on disk.
    """
    registry_dir = Path(args.registry_dir)
    signer = None
    if writable:
        actors = ActorStore(registry_dir / "actors")
        signer = actors.get_or_create(SIGNER_USERNAME, "Registry signer")
    return MetadataRegistry.open(registry_dir, signer=signer)


def cmd_show(args):
    """Print the manifest."""
    registry = open_registry(args)
    print(json.dumps(registry.manifest(), indent=2))


def cmd_create_attribute(args):
    """Create an attribute."""
    registry = open_registry(args, writable=True)
    names, rarities = parse_traits(args.trait)
    attribute_id = registry.create_attribute(
        args.caller,
        args.name,
        len(names),
        names,
        rarities,
        cid=args.cid,
        generation_script=args.script,
    )
    print(f"Created attribute {attribute_id}: {args.name} ({len(names)} traits)")


def cmd_add_traits(args):
    """Append a batch of traits."""
    registry = open_registry(args, writable=True)
    names, rarities = parse_traits(args.trait)
    trait_ids = registry.add_traits(args.caller, args.attribute, len(names), names, rarities)
    print(f"Added traits {trait_ids} to attribute {args.attribute}")


def cmd_add_trait(args):
    """Append one trait."""
    registry = open_registry(args, writable=True)
    registry.add_single_trait(args.caller, args.attribute, args.trait_id, args.name, args.rarity)
    print(f"Added trait {args.trait_id} to attribute {args.attribute}")


def cmd_update_cid(args):
    """Record a new CID."""
    registry = open_registry(args, writable=True)
    registry.update_cid(args.caller, args.attribute, args.cid)
    print(f"Attribute {args.attribute} CID: {args.cid}")


def cmd_update_cids(args):
    """Record CIDs for all attributes."""
    registry = open_registry(args, writable=True)
    updated = registry.update_multiple_cids(args.caller, args.cids)
    print(f"Updated attributes: {updated}")


def cmd_events(args):
    """List audit events."""
    registry = open_registry(args)
    log = registry.sink
    events = log.find_by_attribute(args.attribute) if args.attribute is not None else log.list()
    for event in events:
        print(f"#{event.sequence} {event.timestamp} {event.event_type} {json.dumps(event.data, sort_keys=True)}")

    if args.verify:
        signer = ActorStore(Path(args.registry_dir) / "actors").get(SIGNER_USERNAME)
        if signer is None:
            raise ValueError("No signing key found in the registry directory")
        invalid = log.verify_all(signer)
        if invalid:
            print(f"\n{len(invalid)} events failed signature verification:")
            for event in invalid:
                print(f"  #{event.sequence} {event.event_type}")
            sys.exit(1)
        print(f"\nAll {len(log)} signatures valid")


def main(argv: List[str] = None):
    parser = argparse.ArgumentParser(
        prog="artmeta",
        description="artmeta - Generative collection metadata registry",
    )
    parser.add_argument("--registry-dir", default="./registry",
                        help="Registry directory (default: ./registry)")
    parser.add_argument("--caller", default="",
                        help="Calling identity (checked against roles.json)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("show", help="Print the collection manifest")

    create_parser = subparsers.add_parser("create-attribute", help="Create an attribute")
    create_parser.add_argument("name", help="Attribute name")
    create_parser.add_argument("--cid", required=True, help="Initial asset bundle CID")
    create_parser.add_argument("--script", required=True, help="Generation script reference")
    create_parser.add_argument("-t", "--trait", action="append",
                               help="Initial trait: name:rarity")

    traits_parser = subparsers.add_parser("add-traits", help="Append a batch of traits")
    traits_parser.add_argument("attribute", type=int, help="Attribute ID")
    traits_parser.add_argument("-t", "--trait", action="append", required=True,
                               help="Trait: name:rarity")

    trait_parser = subparsers.add_parser("add-trait", help="Append one trait with explicit ID")
    trait_parser.add_argument("attribute", type=int, help="Attribute ID")
    trait_parser.add_argument("trait_id", type=int, help="Trait ID (must be next in sequence)")
    trait_parser.add_argument("name", help="Trait name")
    trait_parser.add_argument("rarity", help="Rarity tier")

    cid_parser = subparsers.add_parser("update-cid", help="Record a new CID")
    cid_parser.add_argument("attribute", type=int, help="Attribute ID")
    cid_parser.add_argument("cid", help="New CID")

    cids_parser = subparsers.add_parser("update-cids", help="Record CIDs for every attribute")
    cids_parser.add_argument("cids", nargs="*", help='One CID per attribute ("" to skip)')

    events_parser = subparsers.add_parser("events", help="List the audit log")
    events_parser.add_argument("--attribute", type=int, help="Only events for this attribute")
    events_parser.add_argument("--verify", action="store_true", help="Verify event signatures")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    commands = {
        "show": cmd_show,
        "create-attribute": cmd_create_attribute,
        "add-traits": cmd_add_traits,
        "add-trait": cmd_add_trait,
        "update-cid": cmd_update_cid,
        "update-cids": cmd_update_cids,
        "events": cmd_events,
    }
    command = commands.get(args.command)
    if command is None:
        parser.print_help()
        sys.exit(1)

    try:
        command(args)
    except (RegistryError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
