from collections.abc import Iterator
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Records mirror the server's camelCase keys through aliases so REST payloads
# validate directly; attribute access stays snake_case.


class TfsRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class FieldRecord(TfsRecord):
    """A field as it appears in a field list: stable key plus display name"""
    reference_name: str = Field(..., alias="referenceName")
    name: str


class MergedEntry(TfsRecord):
    """One reconciled field; None means the field is absent on that side"""
    reference_name: str = Field(..., alias="referenceName")
    source_name: str | None = Field(None, alias="sourceName")
    target_name: str | None = Field(None, alias="targetName")

    @property
    def is_different(self) -> bool:
        return self.source_name != self.target_name


class ProjectCollection(TfsRecord):
    id: str
    name: str
    url: str | None = None
    state: str | None = None
    description: str | None = None


class TeamProject(TfsRecord):
    id: str
    name: str
    description: str | None = None
    url: str | None = None
    state: str | None = None
    revision: int | None = None
    visibility: str | None = None
    last_update_time: datetime | None = Field(None, alias="lastUpdateTime")


class QueryDefinition(TfsRecord):
    id: str
    name: str
    path: str
    is_folder: bool = Field(False, alias="isFolder")
    is_public: bool = Field(False, alias="isPublic")
    has_children: bool = Field(False, alias="hasChildren")
    wiql: str | None = None
    children: list["QueryDefinition"] = Field(default_factory=list)


def iter_queries(tree: list[QueryDefinition]) -> Iterator[QueryDefinition]:
    """Yield the non-folder queries of a query tree, depth first"""
    for node in tree:
        if not node.is_folder:
            yield node
        yield from iter_queries(node.children)


class FieldDefinition(TfsRecord):
    """Full field definition as reported by the work item tracking service"""
    reference_name: str = Field(..., alias="referenceName")
    name: str
    type: str | None = None
    usage: str | None = None
    description: str | None = None
    read_only: bool = Field(False, alias="readOnly")
    is_queryable: bool = Field(False, alias="isQueryable")
    can_sort_by: bool = Field(False, alias="canSortBy")
    is_identity: bool = Field(False, alias="isIdentity")
    is_picklist: bool = Field(False, alias="isPicklist")
    supported_operations: list[str] = Field(default_factory=list, alias="supportedOperations")

    @field_validator("supported_operations", mode="before")
    @classmethod
    def _operation_names(cls, value: Any) -> list[str]:
        if not value:
            return []
        return [op.get("name") or op.get("referenceName") if isinstance(op, dict) else op
                for op in value]

    def to_field_record(self) -> FieldRecord:
        return FieldRecord(reference_name=self.reference_name, name=self.name)


class BulkEditFailure(TfsRecord):
    id: int
    error: str


class BulkEditResult(TfsRecord):
    project: str
    work_item_type: str
    field: str
    new_value: Any
    dry_run: bool = False
    matched: int = 0
    updated: list[int] = Field(default_factory=list)
    skipped: list[int] = Field(default_factory=list)
    failed: list[BulkEditFailure] = Field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return bool(self.failed)
