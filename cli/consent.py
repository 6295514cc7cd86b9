#!/usr/bin/env python3
"""
Command-line consent client.

Keeps the consent decision in a JSON file (the CLI's local storage) and
synchronizes it with the preference service.

Usage:
    python -m cli.consent onboard learner-42
    python -m cli.consent banner
    python -m cli.consent customize --analytics
    python -m cli.consent status
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from consent.api_client import PreferenceApiClient
from consent.manager import ConsentManager, SaveResult
from consent.storage import JsonFileStorage, mark_onboarded
from core.config import init_config
from core.logging_config import configure_structlog, get_logger
from models.cookies import CookieCategory, CookieSettings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Manage cookie consent for the ML Learning Platform")
    parser.add_argument(
        "--storage",
        type=Path,
        help="Local storage file (overrides CONSENT_STORAGE_PATH)"
    )
    parser.add_argument(
        "--api-url",
        help="Preference service URL (overrides CONSENT_API_URL)"
    )
    parser.add_argument(
        "--offline",
        action="store_true",
        help="Do not contact the preference service"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    subparsers.add_parser("status", help="Show the current consent decision")

    onboard = subparsers.add_parser("onboard", help="Record onboarding for a user")
    onboard.add_argument("user_id", help="Stable user identifier")
    onboard.add_argument("--name", help="Display name stored with the onboarding record")

    subparsers.add_parser("accept-all", help="Allow every cookie category")
    subparsers.add_parser("reject-all", help="Allow essential cookies only")

    customize = subparsers.add_parser("customize", help="Choose optional categories")
    customize.add_argument("--analytics", action="store_true", help="Allow analytics cookies")
    customize.add_argument("--preferences", action="store_true", help="Allow preference cookies")

    subparsers.add_parser("reset", help="Forget the consent decision")
    subparsers.add_parser("banner", help="Report whether the consent banner should show")
    return parser


def _print_status(manager: ConsentManager) -> None:
    consent = manager.consent.value if manager.consent else "none"
    print(f"consent: {consent}")
    for category in CookieCategory:
        allowed = "allowed" if manager.is_allowed(category) else "blocked"
        print(f"  {category.value:<12} {allowed}")


def _print_save(result: SaveResult) -> None:
    print(json.dumps(result.settings.to_json_dict(include_identity=False)))
    if not result.synced:
        print("warning: saved locally only, preference service not updated", file=sys.stderr)


async def run_command(args: argparse.Namespace, manager: ConsentManager) -> int:
    """Execute one parsed command against ``manager``; return the exit code."""
    if args.command == "onboard":
        profile = {"name": args.name} if args.name else None
        mark_onboarded(manager.storage, args.user_id, profile)
        print(f"onboarded {args.user_id}")
        return 0

    if args.command == "banner":
        show = manager.should_show_banner()
        print("show" if show else "hide")
        return 0

    await manager.load_preferences()

    if args.command == "status":
        _print_status(manager)
    elif args.command == "accept-all":
        _print_save(await manager.accept_all())
    elif args.command == "reject-all":
        _print_save(await manager.reject_all())
    elif args.command == "customize":
        settings = CookieSettings(analytics=args.analytics, preferences=args.preferences)
        _print_save(await manager.save_custom(settings))
    elif args.command == "reset":
        remote_deleted = await manager.reset_preferences()
        print("reset" + (" (remote record deleted)" if remote_deleted else ""))
    return 0


async def _main(args: argparse.Namespace) -> int:
    config = init_config()
    configure_structlog(
        log_level=config.monitoring.log_level,
        json_logs=False,
        development_mode=True
    )
    logger = get_logger(__name__)

    storage = JsonFileStorage(args.storage or config.client.storage_path)
    api_client = None
    if not args.offline:
        api_client = PreferenceApiClient(
            args.api_url or config.client.api_url,
            timeout=config.client.request_timeout
        )

    logger.debug("consent_cli_command", command=args.command, storage=str(storage.path))
    manager = ConsentManager(storage, api_client=api_client)
    try:
        return await run_command(args, manager)
    finally:
        if api_client is not None:
            await api_client.aclose()


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(_main(args))
    except (ValueError, OSError) as e:
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
