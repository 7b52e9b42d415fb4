"""Tests for the bulk field editor."""

from unittest.mock import AsyncMock

import pytest

from tfs_admin.errors import TfsApiError
from tfs_admin.services.bulk_edit import BulkFieldEditor, build_type_query, values_match, wiql_literal

FIELD = "Microsoft.VSTS.Common.Priority"


def work_item(work_item_id, value):
    fields = {"System.Id": work_item_id}
    if value is not None:
        fields[FIELD] = value
    return {"id": work_item_id, "fields": fields}


@pytest.fixture
def editor_client(connected_client):
    connected_client.query_work_item_ids = AsyncMock(return_value=[1, 2, 3, 4])
    connected_client.get_work_items = AsyncMock(return_value=[
        work_item(1, 3),
        work_item(2, 2),
        work_item(3, 1),
        work_item(4, None),
    ])
    connected_client.update_work_item_field = AsyncMock(return_value={})
    return connected_client


class TestQueryBuilding:

    def test_literal_doubles_quotes(self):
        assert wiql_literal("O'Brien's") == "'O''Brien''s'"

    def test_type_query(self):
        wiql = build_type_query("Contoso", "User Story")

        assert "[System.TeamProject] = 'Contoso'" in wiql
        assert "[System.WorkItemType] = 'User Story'" in wiql
        assert wiql.startswith("SELECT [System.Id] FROM WorkItems")


class TestValuesMatch:

    def test_typed_value_matches_text(self):
        assert values_match(2, "2")

    def test_none_only_matches_none(self):
        assert values_match(None, None)
        assert not values_match(None, "2")

    def test_identity_matches_unique_name(self):
        identity = {"displayName": "Jamal Hartnett", "uniqueName": "FABRIKAM\\jamal"}

        assert values_match(identity, "FABRIKAM\\jamal")
        assert values_match(identity, "Jamal Hartnett")
        assert not values_match(identity, "someone else")


class TestBulkFieldEditor:

    @pytest.mark.asyncio
    async def test_updates_items_not_already_set(self, editor_client):
        result = await BulkFieldEditor(editor_client).run("Contoso", "Bug", FIELD, "2")

        assert result.matched == 4
        assert result.updated == [1, 3, 4]
        assert result.skipped == [2]
        assert result.failed == []
        updated_ids = [call.args[0] for call in editor_client.update_work_item_field.call_args_list]
        assert updated_ids == [1, 3, 4]
        editor_client.get_work_items.assert_awaited_once_with([1, 2, 3, 4], fields=["System.Id", FIELD])

    @pytest.mark.asyncio
    async def test_old_value_limits_updates(self, editor_client):
        result = await BulkFieldEditor(editor_client).run("Contoso", "Bug", FIELD, "2", old_value="3")

        assert result.updated == [1]
        assert result.skipped == [2, 3, 4]
        editor_client.update_work_item_field.assert_awaited_once_with(1, FIELD, "2")

    @pytest.mark.asyncio
    async def test_dry_run_writes_nothing(self, editor_client):
        result = await BulkFieldEditor(editor_client).run("Contoso", "Bug", FIELD, "2", dry_run=True)

        assert result.dry_run
        assert result.updated == [1, 3, 4]
        editor_client.update_work_item_field.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_is_recorded_and_loop_continues(self, editor_client):
        editor_client.update_work_item_field = AsyncMock(side_effect=[
            {},
            TfsApiError(400, "https://x/_apis/wit/workitems/3", "rule violation"),
            {},
        ])

        result = await BulkFieldEditor(editor_client).run("Contoso", "Bug", FIELD, "2")

        assert result.updated == [1, 4]
        assert [f.id for f in result.failed] == [3]
        assert "rule violation" in result.failed[0].error
        assert result.has_failures

    @pytest.mark.asyncio
    async def test_no_matching_items(self, editor_client):
        editor_client.query_work_item_ids = AsyncMock(return_value=[])

        result = await BulkFieldEditor(editor_client).run("Contoso", "Bug", FIELD, "2")

        assert result.matched == 0
        assert result.updated == []
        editor_client.get_work_items.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_query_errors_propagate(self, editor_client):
        editor_client.query_work_item_ids = AsyncMock(
            side_effect=TfsApiError(400, "https://x/_apis/wit/wiql", "TF51005: field does not exist")
        )

        with pytest.raises(TfsApiError, match="TF51005"):
            await BulkFieldEditor(editor_client).run("Contoso", "Bug", FIELD, "2")

    @pytest.mark.asyncio
    async def test_item_deleted_after_query_is_reported(self, editor_client):
        editor_client.query_work_item_ids = AsyncMock(return_value=[1, 2])
        editor_client.get_work_items = AsyncMock(return_value=[work_item(1, 3)])

        result = await BulkFieldEditor(editor_client).run("Contoso", "Bug", FIELD, "2")

        assert result.updated == [1]
        assert [f.id for f in result.failed] == [2]
        assert "could not be read" in result.failed[0].error
        editor_client.update_work_item_field.assert_awaited_once_with(1, FIELD, "2")
