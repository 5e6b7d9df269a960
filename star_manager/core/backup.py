"""Point-in-time backups of the starred set and star lists, with restore."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence

from star_manager.constants import (
    BACKUP_SCHEMA_VERSION,
    BULK_CONCURRENCY,
    MAX_ERROR_MESSAGES,
)
from star_manager.core.executor import SkipOperation, run_bulk
from star_manager.core.plan import PlanExecutor, index_memberships
from star_manager.exceptions import BackupError
from star_manager.types import (
    ActionType,
    BatchResult,
    ExecutionPlan,
    PlanAction,
    StarList,
    StarredRepo,
)
from star_manager.utils.formatting import parse_github_datetime
from star_manager.utils.logging import log_with_context

_FILENAME_RE = re.compile(
    r"^backup-(?P<user>.+)-(?P<stamp>\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}[-\dZ]*)\.json$"
)


@dataclass
class BackupList:
    name: str
    description: str | None = None
    is_private: bool = False
    repos: list[str] = field(default_factory=list)


@dataclass
class Backup:
    """Serializable snapshot of stars and lists."""

    user: str
    timestamp: str
    stars: list[str] = field(default_factory=list)
    lists: list[BackupList] = field(default_factory=list)
    version: int = BACKUP_SCHEMA_VERSION

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class BackupInfo:
    """A backup file found on disk."""

    filename: str
    path: Path
    user: str
    timestamp: str


def _now_iso() -> str:
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def backup_filename(user: str, timestamp: str) -> str:
    """``backup-<user>-<timestamp>.json`` with ``:`` and ``.`` replaced by ``-``."""
    return f"backup-{user}-{re.sub(r'[:.]', '-', timestamp)}.json"


def parse_backup_filename(filename: str) -> tuple[str, str] | None:
    """Return ``(user, readable_timestamp)`` for a backup file name, or None."""
    match = _FILENAME_RE.match(filename)
    if not match:
        return None
    date, _, clock = match.group("stamp").partition("T")
    readable = f"{date} {clock[:8].replace('-', ':')}"
    return match.group("user"), readable


def parse_backup(raw: Any) -> Backup:
    """Validate a decoded backup document.

    Raises:
        BackupError: If the document does not match the backup schema.
    """
    if not isinstance(raw, dict):
        raise BackupError("backup is not a JSON object")
    version = raw.get("version")
    if version != BACKUP_SCHEMA_VERSION:
        raise BackupError(
            f"unsupported backup version {version!r} (expected {BACKUP_SCHEMA_VERSION})"
        )
    user = raw.get("user")
    if not isinstance(user, str) or not user:
        raise BackupError("backup 'user' must be a non-empty string")
    timestamp = raw.get("timestamp")
    if not isinstance(timestamp, str) or parse_github_datetime(timestamp) is None:
        raise BackupError(f"backup has an invalid timestamp: {timestamp!r}")
    stars = raw.get("stars")
    if not isinstance(stars, list) or not all(isinstance(s, str) for s in stars):
        raise BackupError("backup 'stars' must be a list of repository names")
    lists = raw.get("lists")
    if not isinstance(lists, list):
        raise BackupError("backup 'lists' must be a list")

    parsed_lists = []
    for entry in lists:
        if not isinstance(entry, dict) or not isinstance(entry.get("name"), str):
            raise BackupError("every backup list needs a 'name'")
        repos = entry.get("repos") or []
        if not isinstance(repos, list) or not all(isinstance(r, str) for r in repos):
            raise BackupError(f"list '{entry['name']}' has invalid 'repos'")
        parsed_lists.append(
            BackupList(
                name=entry["name"],
                description=entry.get("description"),
                is_private=bool(entry.get("is_private", False)),
                repos=repos,
            )
        )

    return Backup(
        user=user,
        timestamp=timestamp,
        stars=stars,
        lists=parsed_lists,
        version=version,
    )


class BackupManager:
    """Creates, lists, loads and restores backups in one directory."""

    def __init__(
        self,
        client,
        backup_dir: str | Path,
        concurrency: int = BULK_CONCURRENCY,
        max_errors: int = MAX_ERROR_MESSAGES,
    ) -> None:
        self.client = client
        self.backup_dir = Path(backup_dir).expanduser()
        self.concurrency = concurrency
        self.max_errors = max_errors

    def build_backup(
        self,
        user: str,
        stars: Sequence[StarredRepo],
        lists: Sequence[StarList],
        contents: Mapping[str, Sequence[StarredRepo]] | None = None,
    ) -> Backup:
        if contents is None:
            contents = self.client.get_list_contents(lists)
        return Backup(
            user=user,
            timestamp=_now_iso(),
            stars=[s.full_name for s in stars],
            lists=[
                BackupList(
                    name=lst.name,
                    description=lst.description,
                    is_private=lst.is_private,
                    repos=[r.full_name for r in contents.get(lst.id, [])],
                )
                for lst in lists
            ],
        )

    def create_backup(
        self,
        user: str,
        stars: Sequence[StarredRepo],
        lists: Sequence[StarList],
        contents: Mapping[str, Sequence[StarredRepo]] | None = None,
    ) -> Path:
        """Write a backup file and return its path.

        Args:
            user: Login of the authenticated user
            stars: Current starred repos
            lists: Current lists
            contents: List items keyed by list id; fetched when omitted

        Raises:
            BackupError: If the file cannot be written.
        """
        backup = self.build_backup(user, stars, lists, contents)
        path = self.backup_dir / backup_filename(user, backup.timestamp)
        tmp = path.with_suffix(".tmp")
        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(backup.to_dict(), indent=2) + "\n", encoding="utf-8")
            tmp.replace(path)
        except OSError as e:
            raise BackupError(f"Failed to write backup {path}: {e}") from e
        log_with_context(
            logging.INFO,
            f"Backed up {len(backup.stars)} stars and {len(backup.lists)} lists to {path}",
        )
        return path

    def list_backups(self) -> list[BackupInfo]:
        """Backups in the directory, newest first."""
        if not self.backup_dir.is_dir():
            return []
        found = []
        for path in self.backup_dir.glob("*.json"):
            parsed = parse_backup_filename(path.name)
            user, timestamp = parsed if parsed else ("unknown", "")
            found.append(BackupInfo(path.name, path, user, timestamp))
        found.sort(key=lambda b: (b.timestamp, b.filename), reverse=True)
        return found

    def load_backup(self, name: str | Path) -> Backup | None:
        """Load and validate a backup, returning None if absent or invalid."""
        path = Path(name)
        if not path.is_absolute() and not path.exists():
            path = self.backup_dir / path
        if not path.exists():
            log_with_context(logging.WARNING, f"Backup {path} not found")
            return None
        try:
            return parse_backup(json.loads(path.read_text(encoding="utf-8")))
        except (ValueError, OSError, BackupError) as e:
            log_with_context(logging.WARNING, f"Ignoring invalid backup {path}: {e}")
            return None

    def restore(
        self,
        backup: Backup,
        on_progress: Callable[[str, int, int], None] | None = None,
    ) -> BatchResult:
        """Bring GitHub back in line with ``backup``.

        Re-stars missing repos, recreates lists missing by name, and adds
        missing items to every list. Nothing is unstarred or removed.
        """
        stars = self.client.get_starred_repos()
        lists = self.client.get_lists()
        starred = {s.full_name.lower() for s in stars}

        to_star = [name for name in backup.stars if name.lower() not in starred]

        def star_one(full_name: str) -> None:
            owner, _, repo = full_name.partition("/")
            if not owner or not repo:
                raise SkipOperation(f"invalid repo name {full_name}")
            self.client.star_repo(owner, repo)

        result = BatchResult()
        if to_star:
            log_with_context(logging.INFO, f"Re-starring {len(to_star)} repos")
            result.merge(
                run_bulk(
                    to_star,
                    star_one,
                    concurrency=self.concurrency,
                    max_errors=self.max_errors,
                    on_progress=(lambda d, t: on_progress("Re-starring repos", d, t))
                    if on_progress
                    else None,
                    description="star",
                ),
                self.max_errors,
            )

        existing = {lst.name.lower(): lst for lst in lists}
        # Every list is read so membership updates keep lists outside the backup
        contents = self.client.get_list_contents(lists)
        present = {
            list_id: {r.full_name.lower() for r in repos}
            for list_id, repos in contents.items()
        }

        actions: list[PlanAction] = []
        for bl in backup.lists:
            if bl.name.lower() not in existing:
                actions.append(
                    PlanAction(
                        type=ActionType.CREATE_LIST,
                        description=f"Recreate list '{bl.name}'",
                        params={
                            "name": bl.name,
                            "description": bl.description or "",
                            "is_private": "true" if bl.is_private else "",
                        },
                    )
                )
        for bl in backup.lists:
            current = existing.get(bl.name.lower())
            have = present.get(current.id, set()) if current else set()
            for full_name in bl.repos:
                if full_name.lower() in have:
                    continue
                actions.append(
                    PlanAction(
                        type=ActionType.ADD_TO_LIST,
                        description=f"Add {full_name} to '{bl.name}'",
                        params={"list_name": bl.name, "repo_full_name": full_name},
                    )
                )

        if actions:
            executor = PlanExecutor(
                self.client,
                lists=lists,
                repos=[*stars, *(r for repos in contents.values() for r in repos)],
                memberships=index_memberships(contents),
                concurrency=self.concurrency,
                max_errors=self.max_errors,
                on_progress=on_progress,
            )
            outcome = executor.execute(ExecutionPlan(summary="Restore", actions=actions))
            result.merge(outcome.lists, self.max_errors)
            result.merge(outcome.categorized, self.max_errors)

        log_with_context(
            logging.INFO,
            f"Restore finished: {result.success} succeeded, {result.failed} failed, "
            f"{result.skipped} skipped",
        )
        return result
