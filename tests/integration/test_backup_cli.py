"""
Integration tests for the backup CLI.

Tests cover:
- Export to stdout and to a file
- Import in both modes
- Exit codes for rejected documents and write failures
"""

import json
import sqlite3
import tempfile

import pytest

from backend.pantrysync_server.store import UserStore
from backend.pantrysync_server.tools import backup_cli
from backend.pantrysync_server.tools.backup_cli import main


def run_cli(*argv):
    with pytest.raises(SystemExit) as exc_info:
        main(list(argv))
    return exc_info.value.code


def write_backup(path, **data):
    path.write_text(json.dumps({"version": 1, "exportedAt": None, "data": data}))
    return str(path)


class TestBackupCli:
    """Tests for pantrysync-backup."""

    @pytest.fixture
    def data_dir(self):
        """Create temporary data directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            yield tmpdir

    def test_import_then_export(self, data_dir, tmp_path, capsys):
        backup = write_backup(
            tmp_path / "backup.json",
            inventory=[{"id": "apple-1", "name": "Apple"}],
            wasteLog=[{"itemName": "Bread"}],
        )

        code = run_cli(
            "import", "--user-id", "u1", "--data-dir", data_dir, "--input", backup
        )

        assert code == 0
        result = json.loads(capsys.readouterr().out)
        assert result["mode"] == "merge"
        assert result["summary"]["inventory"] == 1
        assert result["summary"]["wasteLog"] == 1

        assert run_cli("export", "--user-id", "u1", "--data-dir", data_dir) == 0
        document = json.loads(capsys.readouterr().out)
        assert document["data"]["inventory"][0]["id"] == "apple-1"

    def test_export_to_file(self, data_dir, tmp_path, capsys):
        output = tmp_path / "out.json"

        code = run_cli(
            "export", "--user-id", "u1", "--data-dir", data_dir, "--output", str(output)
        )

        assert code == 0
        assert json.loads(output.read_text())["version"] == 1
        assert "Backup written" in capsys.readouterr().out

    def test_replace_with_tier(self, data_dir, tmp_path, capsys):
        cookware = [{"id": f"c{i}"} for i in range(8)]
        backup = write_backup(tmp_path / "backup.json", cookware=cookware)

        code = run_cli(
            "import",
            "--user-id", "u1",
            "--data-dir", data_dir,
            "--input", backup,
            "--mode", "replace",
            "--tier", "pro",
        )

        assert code == 0
        result = json.loads(capsys.readouterr().out)
        assert result["summary"]["cookware"] == 8
        assert "warnings" not in result

    def test_rejected_backup(self, data_dir, tmp_path, capsys):
        backup = write_backup(tmp_path / "backup.json", recipes=[{"id": "r1"}])

        code = run_cli("import", "--user-id", "u1", "--data-dir", data_dir, "--input", backup)

        assert code == 2
        assert json.loads(capsys.readouterr().out)["code"] == "IMPORT_VALIDATION_FAILED"
        assert not UserStore(data_dir)._get_db_path("u1").exists()

    def test_unreadable_backup(self, data_dir, tmp_path):
        broken = tmp_path / "broken.json"
        broken.write_text("{not json")

        assert run_cli(
            "import", "--user-id", "u1", "--data-dir", data_dir, "--input", str(broken)
        ) == 2
        assert run_cli(
            "import", "--user-id", "u1", "--data-dir", data_dir, "--input", "/no/such/file"
        ) == 2

    def test_non_utf8_backup(self, data_dir, tmp_path, capsys):
        binary = tmp_path / "backup.json"
        binary.write_bytes(b"\xff\xfe\x00{")

        code = run_cli(
            "import", "--user-id", "u1", "--data-dir", data_dir, "--input", str(binary)
        )

        assert code == 2
        assert "Cannot read backup file" in capsys.readouterr().out

    def test_non_object_backup(self, data_dir, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[]")

        assert run_cli(
            "import", "--user-id", "u1", "--data-dir", data_dir, "--input", str(path)
        ) == 2

    def test_write_failure(self, data_dir, tmp_path, monkeypatch, capsys):
        async def failing_replace(self, *args, **kwargs):
            raise sqlite3.OperationalError("disk I/O error")

        monkeypatch.setattr(backup_cli.SyncService, "from_config", _service_with(failing_replace))
        backup = write_backup(tmp_path / "backup.json")

        code = run_cli(
            "import", "--user-id", "u1", "--data-dir", data_dir, "--input", backup,
            "--mode", "replace",
        )

        assert code == 1
        assert json.loads(capsys.readouterr().out)["code"] == "IMPORT_WRITE_FAILED"

    def test_requires_command(self):
        assert run_cli() == 2


def _service_with(failing_replace):
    """Build a from_config replacement whose store fails core replaces."""
    original = backup_cli.SyncService.from_config

    def from_config(config, plans=None):
        service = original(config, plans=plans)
        service.store.replace_core_collections = failing_replace.__get__(service.store)
        return service

    return from_config
