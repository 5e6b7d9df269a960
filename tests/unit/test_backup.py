"""Unit tests for backups and restore."""

import json
import os
from unittest.mock import MagicMock, patch

import pytest
import requests

from star_manager.core.backup import (
    Backup,
    BackupList,
    BackupManager,
    backup_filename,
    parse_backup,
    parse_backup_filename,
)
from star_manager.exceptions import BackupError
from star_manager.services.github_client import GitHubClient
from star_manager.types import StarList


def _valid_backup(**overrides):
    data = {
        "version": 1,
        "user": "octocat",
        "timestamp": "2026-03-01T10:20:30.123Z",
        "stars": ["facebook/react"],
        "lists": [{"name": "Frontend", "description": None, "is_private": False, "repos": ["facebook/react"]}],
    }
    data.update(overrides)
    return data


@pytest.fixture()
def client(sample_repos, sample_lists):
    mock = MagicMock(spec=GitHubClient)
    mock.get_starred_repos.return_value = sample_repos
    mock.get_lists.return_value = sample_lists
    mock.get_list_contents.return_value = {"UL_1": [sample_repos[0]], "UL_2": []}
    mock.create_list.side_effect = lambda name, description=None, is_private=False: StarList(
        id=f"UL_{name}", name=name, description=description, is_private=is_private
    )
    return mock


@pytest.fixture()
def manager(client, tmp_path):
    return BackupManager(client, tmp_path / "backups", concurrency=2)


class TestFilenames:
    def test_backup_filename(self):
        assert (
            backup_filename("octocat", "2026-03-01T10:20:30.123Z")
            == "backup-octocat-2026-03-01T10-20-30-123Z.json"
        )

    def test_parse_backup_filename(self):
        parsed = parse_backup_filename("backup-my-user-2026-03-01T10-20-30-123Z.json")
        assert parsed == ("my-user", "2026-03-01 10:20:30")

    def test_parse_unrelated_filename(self):
        assert parse_backup_filename("notes.json") is None


class TestParseBackup:
    def test_valid(self):
        backup = parse_backup(_valid_backup())
        assert backup.user == "octocat"
        assert backup.lists == [
            BackupList(name="Frontend", description=None, is_private=False, repos=["facebook/react"])
        ]

    @pytest.mark.parametrize(
        "overrides",
        [
            {"version": 2},
            {"user": ""},
            {"timestamp": "yesterday"},
            {"stars": "facebook/react"},
            {"stars": [1]},
            {"lists": {}},
            {"lists": [{"repos": []}]},
            {"lists": [{"name": "A", "repos": [1]}]},
        ],
    )
    def test_invalid(self, overrides):
        with pytest.raises(BackupError):
            parse_backup(_valid_backup(**overrides))

    def test_not_an_object(self):
        with pytest.raises(BackupError):
            parse_backup([])


class TestCreateAndLoad:
    def test_create_backup_writes_file(self, manager, client, sample_repos, sample_lists):
        path = manager.create_backup("octocat", sample_repos, sample_lists)

        assert path.parent == manager.backup_dir
        assert path.name.startswith("backup-octocat-")
        data = json.loads(path.read_text())
        assert data["version"] == 1
        assert data["stars"] == [r.full_name for r in sample_repos]
        assert data["lists"][0] == {
            "name": "Frontend",
            "description": "UI things",
            "is_private": False,
            "repos": ["facebook/react"],
        }
        assert data["lists"][1]["repos"] == []
        assert not list(manager.backup_dir.glob("*.tmp"))
        client.get_list_contents.assert_called_once()

    def test_create_backup_with_given_contents(self, manager, client, sample_repos, sample_lists):
        manager.create_backup("octocat", sample_repos, sample_lists, contents={})
        client.get_list_contents.assert_not_called()

    def test_create_backup_write_failure(self, manager, sample_repos):
        with patch("pathlib.Path.write_text", side_effect=OSError("disk full")):
            with pytest.raises(BackupError, match="disk full"):
                manager.create_backup("octocat", sample_repos, [], contents={})

    def test_round_trip_through_disk(self, manager, sample_repos, sample_lists):
        path = manager.create_backup("octocat", sample_repos, sample_lists)
        loaded = manager.load_backup(path.name)
        assert isinstance(loaded, Backup)
        assert loaded.stars == [r.full_name for r in sample_repos]

    def test_load_missing_or_invalid(self, manager):
        assert manager.load_backup("nope.json") is None
        manager.backup_dir.mkdir(parents=True)
        (manager.backup_dir / "bad.json").write_text("{not json")
        assert manager.load_backup("bad.json") is None
        (manager.backup_dir / "old.json").write_text(json.dumps(_valid_backup(version=0)))
        assert manager.load_backup(str(manager.backup_dir / "old.json")) is None
        (manager.backup_dir / "backup-alice-2024-01-01T00-00-00-000Z.json").write_bytes(
            b'{"version": 1, "user": "\xff\xfe"}'
        )
        assert manager.load_backup("backup-alice-2024-01-01T00-00-00-000Z.json") is None

    def test_list_backups_newest_first(self, manager):
        assert manager.list_backups() == []
        manager.backup_dir.mkdir(parents=True)
        for name in (
            "backup-octocat-2026-01-01T00-00-00-000Z.json",
            "backup-octocat-2026-03-01T00-00-00-000Z.json",
            "random.json",
        ):
            (manager.backup_dir / name).write_text("{}")
        (manager.backup_dir / "ignored.txt").write_text("")

        backups = manager.list_backups()

        assert [b.timestamp for b in backups] == ["2026-03-01 00:00:00", "2026-01-01 00:00:00", ""]
        assert backups[-1].user == "unknown"
        assert os.path.basename(backups[0].path) == backups[0].filename


class TestRestore:
    def test_restores_missing_stars_lists_and_items(self, manager, client):
        backup = Backup(
            user="octocat",
            timestamp="2026-03-01T10:20:30.123Z",
            stars=["facebook/react", "gone/repo", "bad-name"],
            lists=[
                BackupList(name="Frontend", repos=["facebook/react", "pytorch/pytorch"]),
                BackupList(name="Archive", is_private=True, repos=["someone/old-tool"]),
            ],
        )

        result = manager.restore(backup)

        client.star_repo.assert_called_once_with("gone", "repo")
        client.unstar_repo.assert_not_called()
        client.create_list.assert_called_once_with("Archive", None, is_private=True)
        calls = {c.args[0]: c.args[1] for c in client.set_repo_lists.call_args_list}
        assert calls == {
            "R_pytorch_pytorch": ["UL_1"],
            "R_someone_old-tool": ["UL_Archive"],
        }
        # 1 star + 1 list + 2 memberships succeed, the malformed name is skipped
        assert result.success == 4
        assert result.skipped == 1
        assert result.failed == 0

    def test_keeps_memberships_outside_backup(self, manager, client, sample_repos):
        client.get_list_contents.return_value = {"UL_1": [], "UL_2": [sample_repos[1]]}
        backup = Backup(
            user="octocat",
            timestamp="2026-03-01T10:20:30.123Z",
            stars=[],
            lists=[BackupList(name="Frontend", repos=["pytorch/pytorch"])],
        )

        manager.restore(backup)

        client.set_repo_lists.assert_called_once_with("R_pytorch_pytorch", ["UL_2", "UL_1"])

    def test_nothing_to_do(self, manager, client, sample_repos):
        backup = Backup(
            user="octocat",
            timestamp="2026-03-01T10:20:30.123Z",
            stars=[r.full_name for r in sample_repos],
            lists=[BackupList(name="Frontend", repos=["facebook/react"])],
        )

        result = manager.restore(backup)

        assert result.total == 0
        client.star_repo.assert_not_called()
        client.set_repo_lists.assert_not_called()

    def test_list_creation_transport_error_is_counted(self, manager, client):
        client.create_list.side_effect = requests.ConnectionError("reset by peer")
        backup = Backup(
            user="octocat",
            timestamp="2026-03-01T10:20:30.123Z",
            stars=["facebook/react", "gone/repo"],
            lists=[
                BackupList(name="Frontend", repos=["pytorch/pytorch"]),
                BackupList(name="Archive", repos=["someone/old-tool"]),
            ],
        )

        result = manager.restore(backup)

        assert result.failed == 1
        assert "reset by peer" in result.errors
        client.star_repo.assert_called_once_with("gone", "repo")
        client.set_repo_lists.assert_called_once_with("R_pytorch_pytorch", ["UL_1"])
