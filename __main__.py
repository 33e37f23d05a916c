"""CLI entry point for vibe-variants.

This module acts as the central entry point for the project's CLI tools.
It delegates commands to the appropriate submodules or runs specific tasks.
"""

import argparse
import getpass
import json
import subprocess
import sys

from dotenv import load_dotenv

from vibe.config import (
    EnvVar,
    get_available_llm_providers,
    get_db_path,
    get_environment,
    get_environment_info,
    list_environment_variables,
)
from vibe.core import VibeError, get_logger, setup_logging

# Load environment variables from .env file
load_dotenv()

logger = get_logger("cli")


# =============================================================================
# Serve Command (HTTP API)
# =============================================================================


def handle_serve_command(argv: list[str]) -> int:
    """Run the HTTP API with uvicorn.

    Usage:
        python . serve                   # Bind VIBE_API_HOST:VIBE_API_PORT
        python . serve --port 18091
    """
    parser = argparse.ArgumentParser(
        prog="python . serve",
        description="Run the vibe-variants HTTP API",
    )
    parser.add_argument(
        "--host",
        default=get_environment(EnvVar.VIBE_API_HOST),
        help="Bind address (default: VIBE_API_HOST)",
    )
    parser.add_argument(
        "--port",
        "-p",
        type=int,
        default=get_environment(EnvVar.VIBE_API_PORT),
        help="Port number (default: VIBE_API_PORT)",
    )
    parser.add_argument(
        "--reload", action="store_true", help="Reload on code changes (development)"
    )
    args = parser.parse_args(argv)

    import uvicorn

    from vibe.api import create_app

    logger.info(f"Serving HTTP API on http://{args.host}:{args.port}")
    if args.reload:
        uvicorn.run(
            "vibe.api:create_app",
            factory=True,
            host=args.host,
            port=args.port,
            reload=True,
        )
    else:
        uvicorn.run(create_app(), host=args.host, port=args.port)
    return 0


# =============================================================================
# MCP Command
# =============================================================================


def handle_mcp_command(argv: list[str]) -> int:
    """Run the MCP server.

    Usage:
        python . mcp                       # STDIO mode
        python . mcp --transport http      # HTTP on MCP_PORT
    """
    from vibe.mcp import main as mcp_main

    return mcp_main(argv)


# =============================================================================
# Models Command
# =============================================================================


def cmd_list_models(_args: argparse.Namespace) -> int:
    """List registered models and which providers have keys."""
    from vibe.llm import DEFAULT_MODEL, LLMModel, LLMProviderType

    configured = get_available_llm_providers()
    logger.info("Available LLM Models:")
    for provider in LLMProviderType:
        models = LLMModel.list_by_provider(provider)
        if models:
            key_tag = "" if provider.value in configured else " (no key in env)"
            logger.info(f"\n  {provider.value}{key_tag}:")
            for model in models:
                default_tag = " (default)" if model is DEFAULT_MODEL else ""
                logger.info(f"    {model.spec.name}{default_tag}")
    return 0


def handle_models_command(argv: list[str]) -> int:
    parser = argparse.ArgumentParser(
        prog="python . models",
        description="List registered LLM models",
    )
    return cmd_list_models(parser.parse_args(argv))


# =============================================================================
# Session Command
# =============================================================================


def cmd_session_show(args: argparse.Namespace) -> int:
    """Print a session with its plans and variants as JSON."""
    from vibe.records import open_record_store
    from vibe.session import SessionLifecycle

    store = open_record_store(args.db)
    try:
        snapshot = SessionLifecycle(store).get_full_session(args.session_id)
        data = snapshot.to_dict()
        if args.iterations:
            data["iterations"] = [
                it.to_dict() for it in store.list_session_iterations(args.session_id)
            ]
    finally:
        store.close()

    print(json.dumps(data, indent=2))
    return 0


def cmd_session_list(args: argparse.Namespace) -> int:
    """List recent sessions."""
    from vibe.records import open_record_store

    store = open_record_store(args.db)
    try:
        sessions = store.list_sessions(user_id=args.user, limit=args.limit)
    finally:
        store.close()

    if not sessions:
        logger.info("No sessions found")
        return 0
    for session in sessions:
        logger.info(
            f"  {session.id}  {session.status.value:<20} "
            f"{session.updated_at:%Y-%m-%d %H:%M}  user={session.user_id or '-'}"
        )
    return 0


def handle_session_command(argv: list[str]) -> int:
    """Handle session inspection commands.

    Usage:
        python . session list
        python . session show SESSION_ID [--iterations]
    """
    parser = argparse.ArgumentParser(
        prog="python . session",
        description="Inspect stored sessions",
    )
    parser.add_argument(
        "--db", default=None, help="Database path (default: VIBE_DB_PATH)"
    )
    subparsers = parser.add_subparsers(dest="subcommand", required=True)

    show_parser = subparsers.add_parser("show", help="Show one session as JSON")
    show_parser.add_argument("session_id", help="Session ID")
    show_parser.add_argument(
        "--iterations", action="store_true", help="Include iteration history"
    )
    show_parser.set_defaults(func=cmd_session_show)

    list_parser = subparsers.add_parser("list", help="List recent sessions")
    list_parser.add_argument("--user", default=None, help="Filter by user ID")
    list_parser.add_argument("--limit", "-n", type=int, default=20)
    list_parser.set_defaults(func=cmd_session_list)

    args = parser.parse_args(argv)
    return args.func(args)


# =============================================================================
# Keys Command
# =============================================================================


def cmd_keys_set(args: argparse.Namespace) -> int:
    """Store a provider API key for a user."""
    from vibe.llm import get_provider_type
    from vibe.records import open_record_store

    provider = get_provider_type(args.provider).value
    api_key = args.key or getpass.getpass(f"{provider} API key: ")
    if not api_key.strip():
        logger.error("API key must not be empty")
        return 1

    store = open_record_store(args.db)
    try:
        store.store_api_key(args.user, provider, api_key.strip())
    finally:
        store.close()
    logger.info(f"Stored {provider} key for {args.user}")
    return 0


def cmd_keys_delete(args: argparse.Namespace) -> int:
    """Delete a user's stored provider API key."""
    from vibe.llm import get_provider_type
    from vibe.records import open_record_store

    provider = get_provider_type(args.provider).value
    store = open_record_store(args.db)
    try:
        deleted = store.delete_api_key(args.user, provider)
    finally:
        store.close()
    if not deleted:
        logger.warning(f"No {provider} key stored for {args.user}")
        return 1
    logger.info(f"Deleted {provider} key for {args.user}")
    return 0


def handle_keys_command(argv: list[str]) -> int:
    """Handle per-user provider key commands.

    Usage:
        python . keys set USER_ID PROVIDER [--key KEY]
        python . keys delete USER_ID PROVIDER
    """
    parser = argparse.ArgumentParser(
        prog="python . keys",
        description="Manage per-user provider API keys",
    )
    parser.add_argument(
        "--db", default=None, help="Database path (default: VIBE_DB_PATH)"
    )
    subparsers = parser.add_subparsers(dest="subcommand", required=True)

    set_parser = subparsers.add_parser("set", help="Store a provider key")
    set_parser.add_argument("user", help="User ID (bearer token subject)")
    set_parser.add_argument("provider", help="anthropic, openai, google or deepseek")
    set_parser.add_argument(
        "--key", default=None, help="Key value (prompted if omitted)"
    )
    set_parser.set_defaults(func=cmd_keys_set)

    delete_parser = subparsers.add_parser("delete", help="Delete a provider key")
    delete_parser.add_argument("user", help="User ID")
    delete_parser.add_argument("provider", help="anthropic, openai, google or deepseek")
    delete_parser.set_defaults(func=cmd_keys_delete)

    args = parser.parse_args(argv)
    return args.func(args)


# =============================================================================
# Env Command
# =============================================================================


def cmd_env(argv: list[str]) -> int:
    """Show configuration variables and their current values."""
    category = argv[0] if argv else None
    logger.info(f"Database: {get_db_path()}")
    for var in list_environment_variables(category):
        info = get_environment_info(var)
        value = get_environment(var)
        if value and (info.name.endswith("_KEY") or info.name.endswith("_SECRET")):
            value = "****"
        logger.info(f"  [{info.category}] {info.name}={value}  # {info.description}")
    return 0


# =============================================================================
# Test Command
# =============================================================================


def cmd_test(extra_args: list[str]) -> int:
    """Run pytest with provided arguments and test tier options.

    Usage:
        python . test                # Run all tests
        python . test --unit         # Run only unit tests
        python . test --mcp          # Run MCP protocol tests
        python . test -k "revert"    # Run tests matching pattern
    """
    tier_markers = {
        "--unit": ["-m", "unit"],
        "--integration": ["-m", "integration"],
        "--mcp": ["-m", "mcp"],
        "--all": [],
    }

    pytest_args: list[str] = []
    remaining_args: list[str] = []
    for arg in extra_args:
        if arg in tier_markers:
            pytest_args.extend(tier_markers[arg])
        else:
            remaining_args.append(arg)

    cmd = [sys.executable, "-m", "pytest", *pytest_args, *remaining_args]
    logger.info(f"Running: {' '.join(cmd)}")

    try:
        return subprocess.call(cmd)
    except KeyboardInterrupt:
        return 130


# =============================================================================
# Main
# =============================================================================


def show_help() -> None:
    """Display CLI help message."""
    print("Usage: python . {command} [args]")
    print("\n=== Services ===")
    print("  serve      Run the HTTP API (streaming generation, iteration)")
    print("  mcp        Run the MCP server (STDIO or HTTP mode)")
    print("\n=== Operations ===")
    print("  models     List registered LLM models")
    print("  session    Inspect stored sessions (list, show)")
    print("  keys       Manage per-user provider API keys (set, delete)")
    print("  env        Show configuration variables")
    print("\n=== Development ===")
    print("  test       Run the test suite (--unit, --integration, --mcp)")
    print("\nExamples:")
    print("  python . serve --port 18090")
    print("  python . mcp --transport http")
    print("  python . session show 3f2c...")
    print("  python . keys set user-1 openai")


def main() -> int:
    """Main entry point for the CLI."""
    if len(sys.argv) < 2:
        show_help()
        return 1

    command = sys.argv[1]
    rest_args = sys.argv[2:]

    if command in ("-h", "--help"):
        show_help()
        return 0

    commands = {
        "serve": lambda: handle_serve_command(rest_args),
        "mcp": lambda: handle_mcp_command(rest_args),
        "models": lambda: handle_models_command(rest_args),
        "session": lambda: handle_session_command(rest_args),
        "keys": lambda: handle_keys_command(rest_args),
        "env": lambda: cmd_env(rest_args),
        "test": lambda: cmd_test(rest_args),
    }

    if command in commands:
        if command != "mcp":
            setup_logging()
        try:
            return commands[command]()
        except VibeError as e:
            logger.error(f"{e.error_type}: {e.message}")
            return 1

    logger.error(f"Unknown command: {command}")
    show_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
