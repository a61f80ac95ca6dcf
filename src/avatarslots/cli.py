# src/avatarslots/cli.py

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from avatarslots import log_utils
from avatarslots.constants import EVENT_PROVISIONING_PROGRESS, PRIMARY_SLOT_ID, SLOT_IDS
from avatarslots.exceptions import AvatarSlotsError
from avatarslots.paths import default_log_dir
from avatarslots.provisioning import ProvisioningOrchestrator
from avatarslots.settings import Settings, load_settings
from avatarslots.slots.models import SlotConfig
from avatarslots.utils import get_app_version
from avatarslots.visibility import VisibilityStateMachine


def _format_slot(slot: SlotConfig) -> str:
    marker = "*" if slot.enabled else " "
    model = (
        f"{slot.asset_folder}/{slot.descriptor_file}"
        if slot.is_provisioned
        else "(not provisioned)"
    )
    primary = " [primary]" if slot.slot_id == PRIMARY_SLOT_ID else ""
    return f"{marker} {slot.slot_id}{primary}  {slot.bundle_url or '-'}  {model}"


def _progress_printer(event: str, payload: dict) -> None:
    log_utils.logger.info(f"[{payload.get('slot_id')}] {payload.get('message')}")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="avatarslots - manage Live2D character slots"
    )
    parser.add_argument(
        "--data-dir", help="Directory holding the slots file and downloaded models"
    )
    parser.add_argument("--settings", help="Path to a YAML settings file")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Console log level",
    )
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("slots", help="List every slot and its configuration")

    set_parser = subparsers.add_parser("set", help="Set a slot's bundle URL")
    set_parser.add_argument("slot_id", choices=SLOT_IDS)
    set_parser.add_argument("url", help="Bundle URL ending in .zip (empty to clear)")
    set_parser.add_argument(
        "--disable", action="store_true", help="Exclude the slot from cycling"
    )

    ensure_parser = subparsers.add_parser(
        "ensure", help="Download and prepare a slot's model if needed"
    )
    ensure_parser.add_argument("slot_id", choices=SLOT_IDS)

    change_parser = subparsers.add_parser(
        "change", help="Switch a slot to a new bundle and download it"
    )
    change_parser.add_argument("slot_id", choices=SLOT_IDS)
    change_parser.add_argument("url")

    reset_parser = subparsers.add_parser(
        "reset", help="Restore a slot's built-in bundle"
    )
    reset_parser.add_argument("slot_id", choices=SLOT_IDS)

    import_parser = subparsers.add_parser(
        "import", help="Install a model from a local folder"
    )
    import_parser.add_argument("slot_id", choices=SLOT_IDS)
    import_parser.add_argument("folder")

    paths_parser = subparsers.add_parser(
        "paths", help="Show where a slot's model lives on disk"
    )
    paths_parser.add_argument("slot_id", choices=SLOT_IDS)

    subparsers.add_parser(
        "cycle", help="Prepare the slot after the primary one, as a hotkey would"
    )
    subparsers.add_parser("version", help="Display avatarslots version")
    return parser


def _prepare(args: argparse.Namespace) -> ProvisioningOrchestrator:
    settings: Settings = load_settings(args.settings)
    level = args.log_level or settings.log_level
    if level:
        log_utils.set_log_level(level)
    if settings.log_to_file:
        log_utils.add_file_logging(default_log_dir(), level or "INFO")

    if args.data_dir:
        settings.data_dir = Path(args.data_dir)
    orchestrator = ProvisioningOrchestrator.from_paths(
        settings.paths, request_timeout=settings.request_timeout
    )
    orchestrator.events.subscribe(EVENT_PROVISIONING_PROGRESS, _progress_printer)
    return orchestrator


def _run_command(args: argparse.Namespace, orchestrator: ProvisioningOrchestrator) -> None:
    if args.command == "slots":
        for slot in orchestrator.get_slots():
            print(_format_slot(slot))
    elif args.command == "set":
        slot = orchestrator.save_slot(args.slot_id, args.url, not args.disable)
        print(_format_slot(slot))
    elif args.command == "ensure":
        slot = asyncio.run(orchestrator.ensure_ready(args.slot_id))
        print(_format_slot(slot))
    elif args.command == "change":
        slot = asyncio.run(orchestrator.change_bundle(args.slot_id, args.url))
        print(_format_slot(slot))
    elif args.command == "reset":
        slot = asyncio.run(orchestrator.reset_bundle(args.slot_id))
        print(_format_slot(slot))
    elif args.command == "import":
        slot = asyncio.run(orchestrator.import_from_folder(args.slot_id, args.folder))
        print(_format_slot(slot))
    elif args.command == "paths":
        slot_paths = orchestrator.slot_paths(args.slot_id)
        print(f"root: {slot_paths.root}")
        if slot_paths.descriptor_path is not None:
            print(f"model: {slot_paths.descriptor_path}")
        if slot_paths.aux_dir is not None:
            print(f"textures: {slot_paths.aux_dir}")
    elif args.command == "cycle":
        machine = VisibilityStateMachine(orchestrator)
        result = asyncio.run(machine.cycle())
        print(f"{result.previous_slot_id} -> {result.slot_id}")


def main(argv: Optional[List[str]] = None) -> None:
    """
    Entry point for the avatarslots command-line interface.

    Parses arguments, loads the optional YAML settings, and dispatches the
    slot subcommands. Any AvatarSlotsError is logged and turned into exit
    status 1.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return
    if args.command == "version":
        print(f"avatarslots v{get_app_version()}")
        return

    try:
        orchestrator = _prepare(args)
        _run_command(args, orchestrator)
    except AvatarSlotsError as e:
        log_utils.logger.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    main()
