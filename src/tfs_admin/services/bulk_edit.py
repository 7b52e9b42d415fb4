"""
Bulk field editing across the work items of one type in one project.
"""

import logging
from typing import Any

from tfs_admin.connectors.tfs.client import Client
from tfs_admin.schemas import BulkEditFailure, BulkEditResult
from tfs_admin.utils.progress_tracker import ProgressTracker

logger = logging.getLogger(__name__)


def wiql_literal(value: str) -> str:
    """Quote a string for use in a WIQL comparison"""
    return "'" + value.replace("'", "''") + "'"


def build_type_query(project: str, work_item_type: str) -> str:
    return (
        "SELECT [System.Id] FROM WorkItems"
        f" WHERE [System.TeamProject] = {wiql_literal(project)}"
        f" AND [System.WorkItemType] = {wiql_literal(work_item_type)}"
        " ORDER BY [System.Id]"
    )


def values_match(current: Any, expected: Any) -> bool:
    """Compare a stored field value with one supplied on the command line.

    Values arrive as strings from the command line but the server returns
    typed JSON, so non-null values are also compared as text. Identity
    fields match on display name or unique name.
    """
    if current == expected:
        return True
    if current is None or expected is None:
        return False
    if isinstance(current, dict):
        return str(expected) in (current.get('displayName'), current.get('uniqueName'))
    return str(current) == str(expected)


class BulkFieldEditor:
    """Sets a field value on every matching work item of a type, one item at a time"""

    def __init__(self, client: Client):
        self.client = client

    async def run(self, project: str, work_item_type: str, field: str, new_value: Any,
                  old_value: Any = None, dry_run: bool = False) -> BulkEditResult:
        """
        Query the project's work items of the given type and update the field.

        Args:
            project: Team project name
            work_item_type: Work item type name, e.g. "Bug"
            field: Reference name of the field to set
            new_value: Value to write
            old_value: When given, only items currently holding this value are changed
            dry_run: Report what would change without saving anything

        Returns:
            BulkEditResult with updated, skipped and failed work item IDs
        """
        result = BulkEditResult(
            project=project,
            work_item_type=work_item_type,
            field=field,
            new_value=new_value,
            dry_run=dry_run
        )

        ids = await self.client.query_work_item_ids(build_type_query(project, work_item_type), project)
        result.matched = len(ids)
        logger.info(f"{len(ids)} {work_item_type} work items found in {project}")
        if not ids:
            return result

        work_items = await self.client.get_work_items(ids, fields=["System.Id", field])

        # Items deleted or made unreadable since the query are reported, not retried
        read_ids = {work_item['id'] for work_item in work_items}
        for work_item_id in ids:
            if work_item_id not in read_ids:
                result.failed.append(BulkEditFailure(id=work_item_id, error="Work item could not be read"))

        tracker = ProgressTracker(len(work_items), operation_name=f"Updating {field}")

        for work_item in work_items:
            work_item_id = work_item['id']
            current = work_item.get('fields', {}).get(field)

            if old_value is not None and not values_match(current, old_value):
                result.skipped.append(work_item_id)
            elif values_match(current, new_value):
                result.skipped.append(work_item_id)
            elif dry_run:
                logger.info(f"[dry run] Would set {field} on {work_item_id}: {current!r} -> {new_value!r}")
                result.updated.append(work_item_id)
            else:
                try:
                    await self.client.update_work_item_field(work_item_id, field, new_value)
                    result.updated.append(work_item_id)
                except Exception as e:
                    logger.error(f"Failed to update work item {work_item_id}: {e}")
                    result.failed.append(BulkEditFailure(id=work_item_id, error=str(e)))

            tracker.update()

        logger.info(
            f"Bulk edit of {field} completed: {len(result.updated)} updated, "
            f"{len(result.skipped)} skipped, {len(result.failed)} failed"
        )
        return result
