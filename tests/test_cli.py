"""Tests for the tfs-admin command line."""

import json
from unittest.mock import AsyncMock, patch

import pytest

from tfs_admin import cli
from tfs_admin.config.settings import settings
from tfs_admin.fields.serialization import dump_field_list
from tfs_admin.schemas import FieldDefinition, MergedEntry

from conftest import make_fields

QUIET = ["--log-level", "ERROR"]


@pytest.fixture
def field_files(tmp_path):
    source = tmp_path / "source.json"
    target = tmp_path / "target.json"
    dump_field_list(make_fields(("System.Title", "Title"), ("System.State", "State"), ("Custom.Old", "Old")), source)
    dump_field_list(make_fields(("System.Title", "Title"), ("System.State", "Status"), ("Custom.New", "New")), target)
    return source, target


class TestFormatting:

    def test_absent_names_use_marker(self):
        table = cli.format_merge_table([
            MergedEntry(reference_name="B", target_name="Beta"),
            MergedEntry(reference_name="A", source_name="Alpha"),
        ])
        lines = table.splitlines()

        assert lines[0].split() == ["ReferenceName", "SourceName", "TargetName"]
        assert set(lines[1]) <= {"-", " "}
        assert lines[2].split() == ["A", "Alpha", cli.ABSENT_MARKER]
        assert lines[3].split() == ["B", cli.ABSENT_MARKER, "Beta"]

    def test_columns_are_aligned(self):
        table = cli.format_table(("Name", "Id"), [("Short", 1), ("A much longer name", 2)])
        lines = table.splitlines()

        assert lines[2].index("1") == lines[3].index("2") == lines[0].index("Id")


class TestCompareFields:

    def test_full_table(self, field_files, capsys):
        source, target = field_files

        assert cli.main(QUIET + ["compare-fields", str(source), str(target)]) == cli.EXIT_OK

        out = capsys.readouterr().out
        assert "System.Title" in out
        assert "Custom.Old" in out
        assert cli.ABSENT_MARKER in out

    def test_different_only_json(self, field_files, capsys):
        source, target = field_files

        cli.main(QUIET + ["compare-fields", str(source), str(target), "--different-only", "--json"])

        entries = {e["referenceName"]: e for e in json.loads(capsys.readouterr().out)}
        assert set(entries) == {"System.State", "Custom.Old", "Custom.New"}
        assert entries["Custom.New"]["sourceName"] is None
        assert entries["System.State"]["targetName"] == "Status"

    def test_no_differences(self, tmp_path, capsys):
        path = tmp_path / "same.json"
        dump_field_list(make_fields(("A", "Alpha")), path)

        cli.main(QUIET + ["compare-fields", str(path), str(path), "--different-only"])

        assert "No differences found." in capsys.readouterr().out

    def test_duplicate_source_fails(self, tmp_path, capsys):
        source = tmp_path / "dup.json"
        target = tmp_path / "target.json"
        dump_field_list(make_fields(("A", "One"), ("A", "Two")), source)
        dump_field_list(make_fields(("A", "Two")), target)

        assert cli.main(QUIET + ["compare-fields", str(source), str(target)]) == cli.EXIT_ERROR
        assert "Duplicate reference name" in capsys.readouterr().err

        assert cli.main(QUIET + ["compare-fields", str(source), str(target), "--lenient"]) == cli.EXIT_OK

    def test_missing_file(self, tmp_path, capsys):
        result = cli.main(QUIET + ["compare-fields", str(tmp_path / "a.json"), str(tmp_path / "b.json")])

        assert result == cli.EXIT_ERROR
        assert "Cannot read field list" in capsys.readouterr().err


class TestRemoteCommands:

    @pytest.fixture
    def remote(self, connected_client):
        with patch("tfs_admin.cli.client_from_args", return_value=connected_client):
            yield connected_client

    def test_fields_table(self, remote, capsys):
        remote.get_fields = AsyncMock(return_value=[
            FieldDefinition.model_validate({"referenceName": "System.Title", "name": "Title", "type": "string"})
        ])

        assert cli.main(QUIET + ["fields", "--project", "Contoso", "--type", "Bug"]) == cli.EXIT_OK

        remote.get_fields.assert_awaited_once_with("Contoso", "Bug")
        assert "System.Title" in capsys.readouterr().out
        assert remote._session is None

    def test_export_fields(self, remote, tmp_path, capsys):
        remote.get_fields = AsyncMock(return_value=[
            FieldDefinition.model_validate({"referenceName": "System.Title", "name": "Title"})
        ])
        output = tmp_path / "fields.json"

        assert cli.main(QUIET + ["export-fields", str(output)]) == cli.EXIT_OK

        assert json.loads(output.read_text(encoding="utf-8"))["count"] == 1
        assert "Saved 1 fields" in capsys.readouterr().out

    def test_bulk_edit_failures_exit_code(self, remote, capsys):
        remote.query_work_item_ids = AsyncMock(return_value=[1])
        remote.get_work_items = AsyncMock(return_value=[{"id": 1, "fields": {"System.State": "Active"}}])
        remote.update_work_item_field = AsyncMock(side_effect=RuntimeError("rule violation"))

        result = cli.main(QUIET + ["bulk-edit", "Contoso", "Bug", "System.State", "Closed"])

        assert result == cli.EXIT_PARTIAL_FAILURE
        out = capsys.readouterr().out
        assert "1 failed" in out
        assert "rule violation" in out


class TestConfiguration:

    def test_missing_pat_is_reported(self, monkeypatch, capsys):
        monkeypatch.setattr(settings, "TFS_AUTH_TYPE", "pat")
        monkeypatch.setattr(settings, "TFS_PAT", "")

        result = cli.main(QUIET + ["projects", "--server-url", "https://tfs.example.com/tfs"])

        assert result == cli.EXIT_ERROR
        assert "Personal Access Token" in capsys.readouterr().err

    def test_pat_override_selects_pat_auth(self, monkeypatch):
        monkeypatch.setattr(settings, "TFS_AUTH_TYPE", "oauth2")
        args = cli.build_parser().parse_args(
            ["projects", "--server-url", "https://tfs.example.com/tfs", "--collection", "Fabrikam", "--pat", "tok"]
        )

        client = cli.client_from_args(args)

        assert client.pat == "tok"
        assert not client.use_oauth2
        assert client.collection == "Fabrikam"
