"""Git auto-commit of the memory root."""

from __future__ import annotations

import asyncio
import logging
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)

_IDENTITY = ["-c", "user.name=memex", "-c", "user.email=memex@local"]


def run_git(repo: Path, args: list[str]) -> tuple[int, str, str]:
    try:
        result = subprocess.run(
            ["git", "-C", str(repo), *args],
            capture_output=True,
            text=True,
            check=False,
            timeout=60,
        )
        return result.returncode, result.stdout, result.stderr
    except FileNotFoundError:
        return 1, "", "git not found"
    except subprocess.TimeoutExpired:
        return 1, "", "git timed out"


def is_git_repo(repo: Path) -> bool:
    code, _, _ = run_git(repo, ["rev-parse", "--is-inside-work-tree"])
    return code == 0


def is_clean(repo: Path) -> bool:
    code, stdout, _ = run_git(repo, ["status", "--porcelain"])
    if code != 0:
        return False
    return stdout.strip() == ""


def commit_all(repo: Path, message: str) -> str | None:
    """Stage everything under ``repo`` and commit. Returns the new HEAD sha.

    Returns None when ``repo`` is not a git work tree or nothing changed.
    """
    if not repo.exists() or not is_git_repo(repo):
        logger.debug("Skipping commit: %s is not a git repository", repo)
        return None
    run_git(repo, ["add", "-A"])
    if is_clean(repo):
        logger.debug("Skipping commit: nothing to commit in %s", repo)
        return None
    code, _, stderr = run_git(repo, [*_IDENTITY, "commit", "-m", message])
    if code != 0:
        logger.warning("git commit failed in %s: %s", repo, stderr.strip())
        return None
    code, stdout, _ = run_git(repo, ["rev-parse", "HEAD"])
    if code != 0:
        return None
    sha = stdout.strip()
    logger.info("Committed %s: %s", sha[:8], message)
    return sha


async def commit_all_async(repo: Path, message: str) -> str | None:
    return await asyncio.to_thread(commit_all, repo, message)
