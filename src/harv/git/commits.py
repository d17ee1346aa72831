from __future__ import annotations

import logging
import subprocess
from collections.abc import Sequence
from datetime import datetime, time
from pathlib import Path

from harv.core.errors import ConfigError, GitError, ShowHelp
from harv.core.models import Commit

logger = logging.getLogger(__name__)

_FIELD_SEP = "\x1f"
_LOG_FORMAT = "%H%x1f%ct%x1f%an%x1f%B"


def _git(repo: Path, *args: str) -> str:
    try:
        cp = subprocess.run(
            ["git", "-C", str(repo), *args],
            check=False,
            capture_output=True,
            encoding="utf-8",
            errors="replace",
        )
    except OSError as e:
        raise GitError(f"cannot run git: {e}") from e
    if cp.returncode != 0:
        raise GitError(cp.stderr.strip() or f"git exit {cp.returncode} in {repo}")
    return cp.stdout


def is_repository(path: Path) -> bool:
    if not path.is_dir():
        return False
    try:
        _git(path, "rev-parse", "--git-dir")
    except GitError:
        return False
    return True


def discover_repositories(configured: Sequence[str | Path]) -> list[Path]:
    """Resolve which repositories to scan.

    With nothing configured the current directory is used, and ShowHelp is
    raised when it is not a repository.
    """
    if not configured:
        cwd = Path.cwd()
        if is_repository(cwd):
            return [cwd]
        raise ShowHelp()

    repos: list[Path] = []
    for raw in configured:
        p = Path(raw).expanduser()
        if is_repository(p):
            repos.append(p)
        else:
            logger.warning("configured path is not a valid git repository: %s", p)

    if not repos:
        raise ConfigError("No valid git repositories found in configuration")
    return repos


def day_window(now: datetime | None = None) -> tuple[datetime, datetime]:
    now = now or datetime.now().astimezone()
    # Resolve midnight through the local zone; its offset can differ from now.
    start = datetime.combine(now.date(), time()).astimezone()
    return start, now


def _branch_tips(repo: Path) -> list[str]:
    out = _git(repo, "for-each-ref", "--format=%(objectname)", "refs/heads")
    return [line.strip() for line in out.splitlines() if line.strip()]


def _walk(repo: Path, tip: str, since: datetime) -> list[tuple[str, int, str, str]]:
    # --since stops the walk at the first commit older than the window.
    out = _git(
        repo,
        "log",
        "-z",
        f"--format={_LOG_FORMAT}",
        f"--since={since.isoformat()}",
        tip,
        "--",
    )
    rows: list[tuple[str, int, str, str]] = []
    for rec in out.split("\x00"):
        rec = rec.lstrip("\n")
        if not rec:
            continue
        parts = rec.split(_FIELD_SEP, 3)
        if len(parts) != 4:
            raise GitError(f"unrecognised git log record: {rec[:80]!r}")
        oid, ct, author, message = parts
        rows.append((oid, int(ct), author, message.rstrip("\n")))
    return rows


def todays_commits(repo: Path, now: datetime | None = None) -> list[Commit]:
    """Commits on any local branch whose committer time falls within today."""
    start, end = day_window(now)
    start_ts = int(start.timestamp())
    end_ts = int(end.timestamp())
    logger.debug("searching commits between %s and %s in %s", start_ts, end_ts, repo)

    seen: set[str] = set()
    commits: list[Commit] = []
    for tip in _branch_tips(repo):
        for oid, ts, author, message in _walk(repo, tip, start):
            if oid in seen:
                continue
            if ts < start_ts:
                break
            seen.add(oid)
            if ts <= end_ts:
                logger.debug("found commit from today: %s by %s", message[:50], author)
                commits.append(Commit(message=message, author=author, timestamp=ts))

    commits.sort(key=lambda c: c.timestamp, reverse=True)
    logger.info("found %d commit(s) from today in %s", len(commits), repo)
    return commits


def commits_from_repositories(repos: Sequence[Path], now: datetime | None = None) -> list[Commit]:
    if len(repos) == 1:
        return todays_commits(repos[0], now)

    commits: list[Commit] = []
    for repo in repos:
        try:
            commits.extend(todays_commits(repo, now))
        except GitError as e:
            logger.warning("failed to get commits from %s: %s", repo, e)
    commits.sort(key=lambda c: c.timestamp, reverse=True)
    return commits
