"""CLI - Command line interface for Gemini Relay."""

from __future__ import annotations

import argparse
import asyncio
import json
import mimetypes
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.markdown import Markdown
from rich.panel import Panel
from rich.table import Table

from .config import DEFAULT_CONFIG_PATH, RelayConfig, build_config, load_raw_config
from .config_validator import Severity, has_errors, validate_config
from .durations import format_duration
from .errors import RelayError
from .models import ModelCatalog, TaskKind
from .observability import configure_logging
from .service import GeminiRelay
from .stores import CacheRequest, FileUploadRequest

console = Console()


def guess_mime_type(path: Path) -> str:
    mime_type, _ = mimetypes.guess_type(path.name)
    if mime_type:
        return mime_type
    if path.suffix in (".yaml", ".yml"):
        return "text/yaml"
    if path.suffix == ".md":
        return "text/markdown"
    if path.suffix == ".ts":
        return "text/typescript"
    return "application/octet-stream"


def read_upload(path_text: str) -> FileUploadRequest:
    path = Path(path_text)
    return FileUploadRequest(
        file_name=path.name,
        mime_type=guess_mime_type(path),
        content=path.read_bytes(),
    )


def print_models(catalog: ModelCatalog) -> None:
    table = Table(title="Gemini models")
    table.add_column("Family / Version", style="cyan")
    table.add_column("Name")
    table.add_column("Caching")
    table.add_column("Preferred")

    for family in catalog.list_available():
        prefs = [task.value for task in TaskKind if family.preferred_for(task)]
        table.add_row(
            family.family_id,
            family.name,
            "yes" if family.supports_caching else "no",
            ", ".join(prefs),
        )
        for version in family.versions:
            table.add_row(
                f"  {version.id}",
                version.name,
                "yes" if version.supports_caching else "no",
                "*" if version.is_preferred else "",
            )
    console.print(table)


def print_records(title: str, records: List[dict]) -> None:
    if not records:
        console.print(f"No {title.lower()} found.", style="dim")
        return
    table = Table(title=title)
    columns = list(records[0].keys())
    for column in columns:
        table.add_column(column)
    for record in records:
        table.add_row(*[", ".join(v) if isinstance(v, list) else str(v) for v in record.values()])
    console.print(table)


def print_json(payload: dict) -> None:
    console.print_json(json.dumps(payload))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Gemini Relay - files, caches and models for Gemini")
    parser.add_argument(
        "--config",
        "-c",
        default=DEFAULT_CONFIG_PATH,
        help="Path to configuration file",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Verbose output (debug logging, operation summary)",
    )
    parser.add_argument(
        "--no-refresh",
        action="store_true",
        help="Skip fetching the model list and use the built-in one",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("models", help="List model families and versions")

    resolve = sub.add_parser("resolve", help="Resolve a model id to a callable version")
    resolve.add_argument("model_id", nargs="?", help="Family or version id (default: configured model)")
    resolve.add_argument("--task", choices=[t.value for t in TaskKind], help="Pick the preferred model for a task")

    files = sub.add_parser("files", help="Manage uploaded files")
    files_sub = files.add_subparsers(dest="action", required=True)
    upload = files_sub.add_parser("upload", help="Upload a file")
    upload.add_argument("path")
    upload.add_argument("--mime-type", help="Override the guessed MIME type")
    upload.add_argument("--display-name", default="")
    files_sub.add_parser("list", help="List uploaded files")
    for action in ("get", "delete"):
        cmd = files_sub.add_parser(action, help=f"{action.capitalize()} a file by id")
        cmd.add_argument("file_id")

    caches = sub.add_parser("caches", help="Manage cached contexts")
    caches_sub = caches.add_subparsers(dest="action", required=True)
    create = caches_sub.add_parser("create", help="Create a cached context")
    create.add_argument("--model", help="Family or version id (default: configured model)")
    create.add_argument("--file-id", dest="file_ids", action="append", default=[], help="Uploaded file id (repeatable)")
    create.add_argument("--content", default="", help="Text content to cache")
    create.add_argument("--system-prompt", default=None)
    create.add_argument("--ttl", default="", help="Lifetime such as 30m or 1h30m (default from config)")
    create.add_argument("--display-name", default="")
    caches_sub.add_parser("list", help="List cached contexts")
    for action in ("get", "delete"):
        cmd = caches_sub.add_parser(action, help=f"{action.capitalize()} a cache by id")
        cmd.add_argument("cache_id")
    query = caches_sub.add_parser("query", help="Ask a question against a cached context")
    query.add_argument("cache_id")
    query.add_argument("query")

    ask = sub.add_parser("ask", help="Upload files and ask a question about them")
    ask.add_argument("query")
    ask.add_argument("paths", nargs="*")
    ask.add_argument("--model")
    ask.add_argument("--ttl", default="")
    ask.add_argument("--cache", action="store_true", help="Cache the uploaded files and query through the cache")

    return parser


def load_relay_config(config_path: str) -> Optional[RelayConfig]:
    """Load config, print validation issues, and return None on blocking errors."""
    try:
        raw_config = load_raw_config(config_path)
    except FileNotFoundError as e:
        console.print(escape(f"⚠️ {e}"), style="yellow")
        console.print("Using default configuration. Set GEMINI_API_KEY environment variable.", style="dim")
        raw_config = {}

    issues = validate_config(raw_config)
    if issues:
        for issue in issues:
            icon = "❌" if issue.severity == Severity.ERROR else "⚠️"
            style = "red" if issue.severity == Severity.ERROR else "yellow"
            console.print(escape(f"  {icon} [{issue.field}] {issue.message}"), style=style)

        if has_errors(issues):
            console.print(
                "\n💡 Fix the errors above, then try again.\n"
                "   Quick fix: export GEMINI_API_KEY=your_key_here\n"
                "   Or copy config/config.yaml → config/config.local.yaml and set api_key",
                style="dim",
            )
            return None

    try:
        return build_config(raw_config)
    except ValueError as e:
        console.print(f"❌ Invalid configuration: {e}", style="red")
        return None


async def run_command(args: argparse.Namespace, relay: GeminiRelay) -> int:
    if not args.no_refresh:
        await relay.start()

    if args.command == "models":
        print_models(relay.catalog)
    elif args.command == "resolve":
        if args.task:
            version = relay.catalog.preferred_version_for(args.task)
            console.print(version or f"No model is preferred for {args.task}")
        else:
            console.print(relay.resolve_model(args.model_id))
    elif args.command == "files":
        await run_files(args, relay)
    elif args.command == "caches":
        await run_caches(args, relay)
    elif args.command == "ask":
        uploads = [read_upload(p) for p in args.paths]
        result = await relay.ask_with_files(
            args.query,
            uploads,
            model=args.model,
            use_cache=args.cache,
            cache_ttl=args.ttl,
        )
        if result.failed_uploads:
            console.print(
                escape(f"⚠️ Upload failed, sent inline: {', '.join(result.failed_uploads)}"), style="yellow"
            )
        if result.cache_error:
            console.print(escape(f"⚠️ Cache not used: {result.cache_error}"), style="yellow")
        subtitle = f"model {result.model}" + (f", cache {result.cache_id}" if result.cache_id else "")
        console.print(Panel(Markdown(result.text), title="🤖 Gemini", subtitle=subtitle, border_style="green"))
    return 0


async def run_files(args: argparse.Namespace, relay: GeminiRelay) -> None:
    if args.action == "upload":
        request = read_upload(args.path)
        if args.mime_type:
            request.mime_type = args.mime_type
        request.display_name = args.display_name
        print_json((await relay.upload_file(request)).to_dict())
    elif args.action == "list":
        print_records("Files", [info.to_dict() for info in await relay.list_files()])
    elif args.action == "get":
        print_json((await relay.get_file(args.file_id)).to_dict())
    elif args.action == "delete":
        await relay.delete_file(args.file_id)
        console.print(f"✅ Deleted file {args.file_id}", style="green")


async def run_caches(args: argparse.Namespace, relay: GeminiRelay) -> None:
    if args.action == "create":
        request = CacheRequest(
            model=args.model or relay.config.model,
            system_prompt=relay.config.system_prompt if args.system_prompt is None else args.system_prompt,
            file_ids=args.file_ids,
            content=args.content,
            ttl=args.ttl,
            display_name=args.display_name,
        )
        info = await relay.create_cache(request)
        print_json(info.to_dict())
        if not args.ttl:
            console.print(f"TTL: {format_duration(relay.config.default_cache_ttl)}", style="dim")
    elif args.action == "list":
        print_records("Caches", [info.to_dict() for info in await relay.list_caches()])
    elif args.action == "get":
        print_json((await relay.get_cache(args.cache_id)).to_dict())
    elif args.action == "delete":
        await relay.delete_cache(args.cache_id)
        console.print(f"✅ Deleted cache {args.cache_id}", style="green")
    elif args.action == "query":
        answer = await relay.query_with_cache(args.cache_id, args.query)
        console.print(Panel(Markdown(answer), title="🤖 Gemini", border_style="green"))


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    load_dotenv()

    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)

    config = load_relay_config(args.config)
    if config is None:
        return 1

    relay = GeminiRelay.from_config(config)
    try:
        code = asyncio.run(run_command(args, relay))
    except RelayError as e:
        console.print(escape(f"❌ {e.code}: {e.message}"), style="red")
        return 1
    except OSError as e:
        console.print(f"❌ {e}", style="red")
        return 1
    except KeyboardInterrupt:
        console.print("\n👋 Cancelled", style="yellow")
        return 130

    if args.verbose:
        summary = relay.stats()
        console.print(
            f"📊 {summary['total_operations']} operation(s), {summary['failures']} failed, "
            f"{summary['total_duration_ms']:.0f}ms total",
            style="dim",
        )
    return code


if __name__ == "__main__":
    sys.exit(main())
