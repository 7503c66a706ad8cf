#!/usr/bin/env python3
# tools/profile_admin.py

"""
Staff tool for inspecting and changing Discord <-> VRChat verification state.

Goes through the same services the bot uses (profile cache, verification state
machine), so every precondition the bot enforces is enforced here too.

Examples:
  Look up a user:
    python tools/profile_admin.py get 123456789012345678

  Verify a user after checking their challenge code:
    python tools/profile_admin.py code usr_c1644b5b-3ca4-45b4-97c6-a2a0de70d469
    python tools/profile_admin.py verify 123456789012345678 \\
        https://vrchat.com/home/user/usr_c1644b5b-3ca4-45b4-97c6-a2a0de70d469 --by staff#1

  Ban / lift a ban:
    python tools/profile_admin.py ban 123456789012345678 --reason "alt account"
    python tools/profile_admin.py unban 123456789012345678

  Remove a stored profile entirely:
    python tools/profile_admin.py delete 123456789012345678 --yes

  Decode an instance link:
    python tools/profile_admin.py instance "wrld_...:12345~friends(usr_...)~region(eu)"

Exit codes: 0 success, 1 refused or failed operation, 2 configuration error.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from dotenv import load_dotenv

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from config.config_loader import ConfigLoader  # noqa: E402
from helpers.error_messages import format_verification_error  # noqa: E402
from helpers.instance_parser import build_launch_url, parse_vrchat_instance  # noqa: E402
from helpers.vrchat_code import generate_code, get_vrchat_id  # noqa: E402
from services.container import Services  # noqa: E402
from utils.errors import BotError, ConfigError, MalformedIdError  # noqa: E402
from utils.logging import get_logger  # noqa: E402

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Inspect and change VRChat verification state",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", metavar="PATH", help="Path to config.yaml")
    sub = parser.add_subparsers(dest="command", required=True)

    get = sub.add_parser("get", help="Show a stored profile")
    get.add_argument("discord_id")

    verify = sub.add_parser("verify", help="Link and verify a VRChat account")
    verify.add_argument("discord_id")
    verify.add_argument("vrchat_id", help="VRChat user id or profile URL")
    verify.add_argument("--name", help="Display name (looked up on VRChat if omitted)")
    verify.add_argument("--by", dest="actor", help="Staff member performing the action")

    unverify = sub.add_parser("unverify", help="Revoke a verification")
    unverify.add_argument("discord_id")
    unverify.add_argument("--by", dest="actor")

    ban = sub.add_parser("ban", help="Ban a user from verification")
    ban.add_argument("discord_id")
    ban.add_argument("--reason")
    ban.add_argument("--by", dest="actor")

    unban = sub.add_parser("unban", help="Lift a ban")
    unban.add_argument("discord_id")
    unban.add_argument("--by", dest="actor")

    delete = sub.add_parser("delete", help="Delete a stored profile")
    delete.add_argument("discord_id")
    delete.add_argument("--by", dest="actor")
    delete.add_argument("--yes", action="store_true", help="Confirm the deletion")

    refresh = sub.add_parser("refresh-name", help="Refresh the stored VRChat display name")
    refresh.add_argument("discord_id")

    code = sub.add_parser("code", help="Print the challenge code for a VRChat account")
    code.add_argument("vrchat_id", help="VRChat user id or profile URL")

    instance = sub.add_parser("instance", help="Decode a VRChat instance link or token")
    instance.add_argument("text")

    return parser


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, sort_keys=True))


def run_offline(args: argparse.Namespace) -> int:
    """Commands that don't need the profile store."""
    if args.command == "code":
        vrchat_id = get_vrchat_id(args.vrchat_id)
        if vrchat_id is None:
            print(format_verification_error(MalformedIdError(args.vrchat_id)))
            return EXIT_FAILED
        print(generate_code(vrchat_id))
        return EXIT_OK

    descriptor = parse_vrchat_instance(args.text)
    if descriptor is None:
        print("❌ Not a VRChat instance link or token.")
        return EXIT_FAILED
    data = descriptor.to_dict()
    if descriptor.world_id and descriptor.instance_id:
        data["launch_url"] = build_launch_url(descriptor)
    _print_json(data)
    return EXIT_OK


async def run(args: argparse.Namespace, services: Services) -> int:
    """Execute one store-backed command against initialized services."""
    machine = services.verification

    try:
        if args.command == "get":
            profile = await services.cache.get_profile(args.discord_id)
            if profile is None:
                print(f"No profile for {args.discord_id}")
                return EXIT_FAILED
            _print_json({**profile.to_dict(), "state": profile.state.value})
            return EXIT_OK

        if args.command == "verify":
            profile = await machine.verify(
                args.discord_id, args.vrchat_id, args.name, verified_by=args.actor
            )
        elif args.command == "unverify":
            profile = await machine.unverify(args.discord_id, actor=args.actor)
        elif args.command == "ban":
            profile = await machine.ban(args.discord_id, args.reason, actor=args.actor)
        elif args.command == "unban":
            profile = await machine.unban(args.discord_id, actor=args.actor)
        elif args.command == "delete":
            if not args.yes:
                print(f"Refusing to delete {args.discord_id} without --yes")
                return EXIT_FAILED
            await machine.delete(args.discord_id, actor=args.actor)
            print(f"🗑️ {args.discord_id}: deleted")
            return EXIT_OK
        elif args.command == "refresh-name":
            name = await machine.refresh_name(args.discord_id)
            if name is None:
                print("Display name could not be refreshed")
                return EXIT_FAILED
            print(name)
            return EXIT_OK
        else:
            raise ValueError(f"Unknown command: {args.command}")
    except BotError as e:
        logger.info("Command %s refused: %s", args.command, e)
        print(format_verification_error(e))
        return EXIT_CONFIG if isinstance(e, ConfigError) else EXIT_FAILED

    print(f"✅ {profile.discord_id}: {profile.state.value}")
    return EXIT_OK


async def _run_with_services(args: argparse.Namespace) -> int:
    if args.config:
        ConfigLoader.reset()
    services = Services(ConfigLoader.load_config(args.config))
    try:
        await services.initialize()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG
    except BotError as e:
        print(format_verification_error(e))
        return EXIT_FAILED

    try:
        return await run(args, services)
    finally:
        await services.shutdown()


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)

    if args.command in ("code", "instance"):
        return run_offline(args)
    return asyncio.run(_run_with_services(args))


if __name__ == "__main__":
    sys.exit(main())
