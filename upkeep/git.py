from logging import getLogger
from os.path import isdir, join
from typing import Optional

from .utils import capture_command, run_command

LOG = getLogger(__name__)


def is_repository(path: str) -> bool:
    return isdir(join(path, ".git"))


def current_branch(path: str) -> Optional[str]:
    branch = capture_command(["git", "-C", path, "rev-parse", "--abbrev-ref", "HEAD"])
    # a detached checkout reports HEAD, which cannot be pulled
    if not branch or branch == "HEAD":
        return None
    return branch


def head_commit(path: str) -> Optional[str]:
    return capture_command(["git", "-C", path, "rev-parse", "HEAD"]) or None


def pull(path: str, branch: str) -> bool:
    LOG.debug("Pulling %s (branch %s)", path, branch)
    return run_command(["git", "-C", path, "pull", "origin", branch]) == 0
