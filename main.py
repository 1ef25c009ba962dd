#!/usr/bin/env python3
"""Nexora agent CLI."""

import argparse
import asyncio
import sys

from archive.job import ArchiveJob
from config.logging_config import setup_logging
from config.settings import Settings
from orchestrator import AgentOrchestrator
from schemas.chat import ChatRequest


async def run_chat(orchestrator: AgentOrchestrator, args) -> int:
    response = await orchestrator.chat(
        args.user,
        ChatRequest(message=args.message, conversation_id=args.conversation)
    )
    print("\n" + "=" * 60)
    print(response.message)
    print("=" * 60)
    if response.suggestions:
        print("\nSuggestions:")
        for suggestion in response.suggestions:
            print(f"  - {suggestion}")
    print(f"\nConversation: {response.conversation_id}\n")
    return 0


async def run_archive(orchestrator: AgentOrchestrator, args) -> int:
    job = ArchiveJob(
        archive_service=orchestrator.archive_service,
        conversation_store=orchestrator.conversation_store,
        cron_hour=orchestrator.settings.archive_cron_hour
    )
    if args.user:
        result = await orchestrator.archive_service.archive_old_messages(args.user)
        print(result.model_dump_json(indent=2))
    else:
        summary = await job.run_manually()
        print(
            f"Processed {summary.processed} users: "
            f"{summary.archived} archived, {summary.errors} errors"
        )
    return 0


def run_status(orchestrator: AgentOrchestrator) -> int:
    for name, status in orchestrator.get_provider_status().items():
        default = " (default)" if status.is_default else ""
        state = "configured" if status.configured else "not configured"
        print(f"{name:8} {state}{default}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Nexora - AI personal assistant backend"
    )
    parser.add_argument(
        "--db-path",
        type=str,
        help="SQLite database file (default: NEXORA_DB_PATH or data/nexora.db)"
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    chat_parser = subparsers.add_parser("chat", help="Send one message to the agent")
    chat_parser.add_argument("message", type=str, help="User message")
    chat_parser.add_argument("--user", "-u", type=str, default="local", help="User id (default: local)")
    chat_parser.add_argument("--conversation", "-c", type=str, help="Continue this conversation")

    archive_parser = subparsers.add_parser("archive", help="Archive old messages now")
    archive_parser.add_argument("--user", "-u", type=str, help="Only this user (default: everyone)")

    subparsers.add_parser("status", help="Show LLM provider configuration")

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API")
    serve_parser.add_argument("--host", type=str, default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    return parser


def main():
    """Main CLI entry point."""
    args = build_parser().parse_args()

    settings = Settings(db_path=args.db_path) if args.db_path else Settings()
    setup_logging("DEBUG" if args.verbose else settings.log_level)

    if args.command == "serve":
        import uvicorn
        from app import create_app

        uvicorn.run(create_app(settings=settings), host=args.host, port=args.port)
        return

    orchestrator = AgentOrchestrator(settings=settings)
    try:
        if args.command == "chat":
            code = asyncio.run(run_chat(orchestrator, args))
        elif args.command == "archive":
            code = asyncio.run(run_archive(orchestrator, args))
        else:
            code = run_status(orchestrator)
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        code = 1
    finally:
        orchestrator.close()

    sys.exit(code)


if __name__ == "__main__":
    main()
