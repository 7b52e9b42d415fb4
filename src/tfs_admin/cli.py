"""
tfs-admin command line.

Usage:
    tfs-admin collections
    tfs-admin projects
    tfs-admin queries <project>
    tfs-admin fields [--project P] [--type T]
    tfs-admin field <reference-name>
    tfs-admin export-fields <output.json> [--project P] [--type T]
    tfs-admin compare-fields <source.json> <target.json> [--different-only]
    tfs-admin bulk-edit <project> <type> <field> <new-value> [--old-value V] [--dry-run]

Connection settings come from TFS_* environment variables or a .env file and
can be overridden with --server-url, --collection and --pat.
"""

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Sequence

from pydantic import BaseModel

from tfs_admin.config.settings import settings
from tfs_admin.connectors.tfs.client import Client
from tfs_admin.errors import TfsAdminError
from tfs_admin.fields import dump_field_list, load_field_list, merge_field_lists
from tfs_admin.schemas import MergedEntry, iter_queries
from tfs_admin.services import BulkFieldEditor
from tfs_admin.utils.logging import setup_logging

logger = logging.getLogger(__name__)

ABSENT_MARKER = "<none>"

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_PARTIAL_FAILURE = 3


def format_table(headers: Sequence[str], rows: Sequence[Sequence[object]]) -> str:
    """Render rows as a left-aligned text table"""
    cells = [[str(h) for h in headers]] + [
        [ABSENT_MARKER if value is None else str(value) for value in row] for row in rows
    ]
    widths = [max(len(row[i]) for row in cells) for i in range(len(headers))]

    lines = ["  ".join(cell.ljust(width) for cell, width in zip(row, widths)).rstrip() for row in cells]
    lines.insert(1, "  ".join("-" * width for width in widths))
    return "\n".join(lines)


def format_merge_table(entries: Sequence[MergedEntry]) -> str:
    rows = [(e.reference_name, e.source_name, e.target_name)
            for e in sorted(entries, key=lambda e: e.reference_name)]
    return format_table(("ReferenceName", "SourceName", "TargetName"), rows)


def format_json(records: Sequence[BaseModel]) -> str:
    return json.dumps([r.model_dump(mode="json", by_alias=True) for r in records], indent=2)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tfs-admin",
        description="Administrative queries and bulk edits against Team Foundation Server"
    )
    parser.add_argument("--log-level", default=settings.LOG_LEVEL,
                        help=f"Logging level (default: {settings.LOG_LEVEL})")

    connection = argparse.ArgumentParser(add_help=False)
    connection.add_argument("--server-url", help="Server URL, e.g. https://tfs.example.com/tfs")
    connection.add_argument("--collection", help="Project collection name")
    connection.add_argument("--pat", help="Personal access token")
    connection.add_argument("--json", action="store_true", help="Print JSON instead of a table")

    scope = argparse.ArgumentParser(add_help=False)
    scope.add_argument("--project", help="Limit to a team project")
    scope.add_argument("--type", dest="work_item_type", help="Limit to a work item type (requires --project)")

    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("collections", parents=[connection], help="List project collections")
    sub.add_parser("projects", parents=[connection], help="List team projects in the collection")

    queries = sub.add_parser("queries", parents=[connection], help="List stored work item queries")
    queries.add_argument("project")

    sub.add_parser("fields", parents=[connection, scope], help="List field definitions")

    field = sub.add_parser("field", parents=[connection], help="Show one field definition")
    field.add_argument("reference_name")

    export = sub.add_parser("export-fields", parents=[connection, scope], help="Save a field list to a file")
    export.add_argument("output", help="Field list file to write")

    compare = sub.add_parser("compare-fields", help="Compare two saved field lists")
    compare.add_argument("source", help="Source field list file")
    compare.add_argument("target", help="Target field list file")
    compare.add_argument("--different-only", action="store_true",
                         help="Only show fields whose names differ or that exist on one side")
    compare.add_argument("--lenient", action="store_true",
                         help="Keep the last of repeated source reference names instead of failing")
    compare.add_argument("--json", action="store_true", help="Print JSON instead of a table")

    bulk = sub.add_parser("bulk-edit", parents=[connection], help="Set a field on all work items of a type")
    bulk.add_argument("project")
    bulk.add_argument("work_item_type")
    bulk.add_argument("field", help="Field reference name, e.g. Microsoft.VSTS.Common.Priority")
    bulk.add_argument("new_value")
    bulk.add_argument("--old-value", help="Only change items currently holding this value")
    bulk.add_argument("--dry-run", action="store_true", help="Report changes without saving")

    return parser


def client_from_args(args: argparse.Namespace) -> Client:
    """Build a client from settings, applying command line overrides"""
    config = {
        'server_url': args.server_url or settings.TFS_SERVER_URL,
        'collection': args.collection or settings.TFS_COLLECTION,
        'auth_type': "pat" if args.pat else settings.TFS_AUTH_TYPE,
        'pat': args.pat or settings.TFS_PAT,
        'client_id': settings.TFS_CLIENT_ID,
        'client_secret': settings.TFS_CLIENT_SECRET,
        'tenant_id': settings.TFS_TENANT_ID,
        'timeout_seconds': settings.TFS_TIMEOUT_SECONDS,
        'max_retries': settings.TFS_MAX_RETRIES
    }
    return Client.from_config(config)


def compare_fields(args: argparse.Namespace) -> int:
    source = load_field_list(args.source)
    target = load_field_list(args.target)
    entries = merge_field_lists(source, target, different_only=args.different_only, strict=not args.lenient)

    if args.json:
        print(format_json(entries))
    elif entries:
        print(format_merge_table(entries))
    else:
        print("No differences found." if args.different_only else "Both field lists are empty.")
    return EXIT_OK


async def run_remote(args: argparse.Namespace) -> int:
    """Run a command that needs a server connection"""
    async with client_from_args(args) as client:
        if args.command == "collections":
            records = await client.get_project_collections()
            headers = ("Name", "Id", "State")
            rows = [(c.name, c.id, c.state) for c in records]

        elif args.command == "projects":
            records = await client.get_team_projects()
            headers = ("Name", "State", "Id")
            rows = [(p.name, p.state, p.id) for p in records]

        elif args.command == "queries":
            records = list(iter_queries(await client.get_query_definitions(args.project)))
            headers = ("Path", "Id")
            rows = [(q.path, q.id) for q in records]

        elif args.command == "fields":
            records = await client.get_fields(args.project, args.work_item_type)
            headers = ("ReferenceName", "Name", "Type", "Usage")
            rows = [(f.reference_name, f.name, f.type, f.usage) for f in records]

        elif args.command == "field":
            records = [await client.get_field_details(args.reference_name)]
            headers = ("Property", "Value")
            rows = list(records[0].model_dump().items())

        elif args.command == "export-fields":
            fields = await client.get_fields(args.project, args.work_item_type)
            count = dump_field_list(fields, args.output)
            print(f"Saved {count} fields to {args.output}")
            return EXIT_OK

        elif args.command == "bulk-edit":
            result = await BulkFieldEditor(client).run(
                args.project, args.work_item_type, args.field, args.new_value,
                old_value=args.old_value, dry_run=args.dry_run
            )
            if args.json:
                print(result.model_dump_json(indent=2))
            else:
                prefix = "[dry run] " if result.dry_run else ""
                print(f"{prefix}{result.matched} matched, {len(result.updated)} updated, "
                      f"{len(result.skipped)} skipped, {len(result.failed)} failed")
                for failure in result.failed:
                    print(f"  {failure.id}: {failure.error}")
            return EXIT_PARTIAL_FAILURE if result.has_failures else EXIT_OK

        else:
            raise ValueError(f"Unknown command: {args.command}")

    print(format_json(records) if args.json else format_table(headers, rows))
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        setup_logging(args.log_level)
        if args.command == "compare-fields":
            return compare_fields(args)
        return asyncio.run(run_remote(args))
    except (TfsAdminError, ValueError) as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
