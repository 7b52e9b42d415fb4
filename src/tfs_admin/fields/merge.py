"""
Field list reconciliation.

Combines a source and a target field list into one entry per reference name,
recording the display name each side uses. Reference names are the stable key;
display names may differ between servers or after a rename.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from tfs_admin.errors import DuplicateKeyError
from tfs_admin.schemas import FieldRecord, MergedEntry

logger = logging.getLogger(__name__)

FieldInput = FieldRecord | Mapping[str, Any]


def _as_record(item: FieldInput) -> FieldRecord:
    if isinstance(item, FieldRecord):
        return item
    return FieldRecord.model_validate(item)


class FieldListMerger:
    """Merges two field lists keyed by reference name.

    In strict mode a reference name repeated in the source list raises
    DuplicateKeyError; otherwise the last source record wins. Repeats in the
    target list always resolve to the last record.
    """

    def __init__(self, strict: bool = True):
        self.strict = strict

    def merge(self, source_list: Iterable[FieldInput], target_list: Iterable[FieldInput],
              different_only: bool = False) -> list[MergedEntry]:
        merged: dict[str, MergedEntry] = {}

        for record in map(_as_record, source_list):
            if record.reference_name in merged:
                if self.strict:
                    raise DuplicateKeyError(record.reference_name)
                logger.warning(f"Duplicate source field {record.reference_name}, keeping last name '{record.name}'")
            merged[record.reference_name] = MergedEntry(
                reference_name=record.reference_name,
                source_name=record.name
            )

        for record in map(_as_record, target_list):
            entry = merged.get(record.reference_name)
            if entry is None:
                merged[record.reference_name] = MergedEntry(
                    reference_name=record.reference_name,
                    target_name=record.name
                )
            else:
                entry.target_name = record.name

        entries = list(merged.values())
        if different_only:
            entries = [entry for entry in entries if entry.is_different]

        logger.debug(f"Merged {len(merged)} fields, returning {len(entries)}")
        return entries


def merge_field_lists(source_list: Iterable[FieldInput], target_list: Iterable[FieldInput],
                      different_only: bool = False, strict: bool = True) -> list[MergedEntry]:
    """Merge two field lists in one call. See FieldListMerger."""
    return FieldListMerger(strict=strict).merge(source_list, target_list, different_only)
