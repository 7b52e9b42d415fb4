"""
Persisted field lists.

A field list file uses the server's list envelope,
{"count": n, "value": [{"referenceName": ..., "name": ...}, ...]}.
A bare JSON array of field objects is accepted on load, so raw REST
responses saved to disk can be compared directly.
"""

import json
import logging
from collections.abc import Iterable
from pathlib import Path

from pydantic import ValidationError

from tfs_admin.errors import FieldListFormatError
from tfs_admin.schemas import FieldDefinition, FieldRecord

logger = logging.getLogger(__name__)


def dump_field_list(records: Iterable[FieldRecord | FieldDefinition], path: str | Path) -> int:
    """Write a field list file. Returns the number of records written."""
    items = [
        (record.to_field_record() if isinstance(record, FieldDefinition) else record)
        .model_dump(by_alias=True)
        for record in records
    ]
    path = Path(path)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump({"count": len(items), "value": items}, f, indent=2)

    logger.info(f"Wrote {len(items)} fields to {path}")
    return len(items)


def load_field_list(path: str | Path) -> list[FieldRecord]:
    """Read a field list file, keeping duplicates and order as stored"""
    path = Path(path)
    try:
        with open(path, encoding='utf-8') as f:
            document = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise FieldListFormatError(f"Cannot read field list {path}: {e}") from e

    if isinstance(document, dict):
        document = document.get('value')
    if not isinstance(document, list):
        raise FieldListFormatError(f"Field list {path} has no 'value' array")

    records = []
    for index, item in enumerate(document):
        try:
            records.append(FieldRecord.model_validate(item))
        except ValidationError as e:
            raise FieldListFormatError(f"Invalid field at index {index} in {path}: {e}") from e

    logger.debug(f"Loaded {len(records)} fields from {path}")
    return records
