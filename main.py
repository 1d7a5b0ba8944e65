"""Environment Dashboard - manage an authorization server's environment variables.

Commands:
- show                 print variables by section, secrets masked
- set FIELD=VALUE ...  change variables and submit only what differs
- rotate-admin-secret  replace the admin secret after confirming the old one
- check                verify the server is reachable
"""
import argparse
import asyncio
import sys
from pathlib import Path
import logging

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))


def _require_dependencies() -> None:
    """Fail fast with a friendly message if the active Python is missing deps."""

    missing = []
    for module in ("pydantic", "pydantic_settings", "httpx"):
        try:
            __import__(module)
        except ModuleNotFoundError:
            missing.append(module)

    if not missing:
        return

    msg = (
        "\nMissing required Python packages: "
        + ", ".join(missing)
        + "\n\n"
        + "Install the project into your current interpreter:\n\n"
        + "  python -m pip install -e .\n\n"
    )
    print(msg)
    raise SystemExit(1)


_require_dependencies()

from config import settings, Section, ADMIN_SECRET, OLD_ADMIN_SECRET, READ_ONLY_FIELDS
from config.env_schema import fields_in_section, parse_text_value
from core.editor import EnvironmentEditor
from core.env_client import EnvClient
from core.errors import EnvDashboardError, FetchError
from core.logging import setup_logging
from core.notify import ConsoleNotifier

logger = logging.getLogger(__name__)

_SECTION_TITLES = {
    Section.INSTANCE_INFORMATION: "Instance Information",
    Section.SOCIAL_LOGIN: "Social Media Logins",
    Section.ROLES: "Roles",
    Section.JWT: "JWT (JSON Web Tokens) Configurations",
    Section.SESSION_STORAGE: "Session Storage",
    Section.EMAIL: "Email Configurations",
    Section.ALLOWED_ORIGINS: "Domain White Listing",
    Section.ORGANIZATION: "Organization Information",
    Section.ACCESS_TOKEN: "Access Token",
    Section.FEATURES: "Disable Features",
    Section.DANGER_ZONE: "Danger Zone",
}


def build_editor(args) -> EnvironmentEditor:
    client = EnvClient(url=args.url, admin_secret=args.admin_secret)
    audit_path = settings.audit_log_path if settings.audit_enabled else None
    return EnvironmentEditor(client, notify=ConsoleNotifier(), audit_log_path=audit_path, actor=args.actor)


def _format_value(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list):
        return ", ".join(value) if value else "(none)"
    return value if value else "(not set)"


def print_variables(editor: EnvironmentEditor, sections) -> None:
    shown = editor.masked_variables()
    for section in sections:
        print(f"\n{_SECTION_TITLES[section]}")
        print("-" * 50)
        for field in fields_in_section(section):
            if field.name == OLD_ADMIN_SECRET:
                continue
            print(f"   {field.name:30} {_format_value(shown[field.name])}")


def parse_assignments(raw_assignments):
    """Turn FIELD=VALUE strings into typed variable changes."""
    changes = {}
    for raw in raw_assignments:
        name, sep, text = raw.partition("=")
        name = name.strip().upper()
        if not sep:
            raise ValueError(f"Expected FIELD=VALUE, got {raw!r}")
        if name in READ_ONLY_FIELDS:
            raise ValueError(f"{name} is read-only")
        if name in (ADMIN_SECRET, OLD_ADMIN_SECRET):
            raise ValueError("Use rotate-admin-secret to change the admin secret")
        changes[name] = parse_text_value(name, text)
    return changes


async def run_show(args) -> int:
    editor = build_editor(args)
    await editor.load_config()
    if args.reveal:
        editor.set_field_visibility({name: True for name in editor.field_visibility})
    sections = [Section(args.section)] if args.section else list(Section)
    print_variables(editor, sections)
    return 0


async def run_set(args) -> int:
    changes = parse_assignments(args.assignments)
    editor = build_editor(args)
    await editor.load_config()
    editor.update_variables(**changes)
    outcome = await editor.save()
    return 0 if outcome and outcome.ok else 1


async def run_rotate_admin_secret(args) -> int:
    if not args.new:
        print("Error: the new admin secret must not be empty", file=sys.stderr)
        return 1
    editor = build_editor(args)
    await editor.load_config()
    confirmation = editor.on_confirm_admin_secret_input(args.old)
    if confirmation.disable_input_field:
        print("Error: the current admin secret does not match", file=sys.stderr)
        return 1
    editor.set_new_admin_secret(args.new)
    outcome = await editor.save()
    return 0 if outcome and outcome.ok else 1


async def run_check(args) -> int:
    client = EnvClient(url=args.url, admin_secret=args.admin_secret)
    try:
        count = await client.ping()
    except FetchError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(f"{client.url} is reachable, {count} variables exposed")
    return 0


_COMMANDS = {
    "show": run_show,
    "set": run_set,
    "rotate-admin-secret": run_rotate_admin_secret,
    "check": run_check,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Environment Dashboard - manage authorizer environment variables")
    parser.add_argument("--url", default=None, help=f"GraphQL endpoint (default: {settings.graphql_url})")
    parser.add_argument("--admin-secret", default=None, help="Admin secret used to authenticate requests")
    parser.add_argument("--actor", default=None, help="Name recorded in the audit log")
    parser.add_argument("--log-level", default=None, help=f"Log level (default: {settings.log_level})")
    sub = parser.add_subparsers(dest="command", required=True)

    show = sub.add_parser("show", help="Print the current variables")
    show.add_argument("--section", choices=[s.value for s in Section], help="Only print one section")
    show.add_argument("--reveal", action="store_true", help="Print secrets in clear text")

    set_cmd = sub.add_parser("set", help="Change variables")
    set_cmd.add_argument("assignments", nargs="+", metavar="FIELD=VALUE",
                         help="Lists are comma-separated, booleans true/false")

    rotate = sub.add_parser("rotate-admin-secret", help="Replace the admin secret")
    rotate.add_argument("--old", required=True, help="Current admin secret")
    rotate.add_argument("--new", required=True, help="New admin secret")

    sub.add_parser("check", help="Check that the server is reachable")
    return parser


def main(argv=None) -> int:
    """Main entry point"""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(args.log_level)

    try:
        return asyncio.run(_COMMANDS[args.command](args))
    except FetchError:
        # Already reported by the editor's notifier
        return 1
    except (EnvDashboardError, ValueError) as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
