import sys
from logging import getLogger
from os import chdir, environ, execve, pathsep
from os.path import abspath, dirname, isfile
from typing import Optional, Sequence

from docker import DockerClient
from docker.errors import DockerException
from requests.exceptions import RequestException

from . import compose, git, packages
from .config import Settings
from .errors import MaintenanceError
from .health import wait_for_healthy
from .models import RunSummary, StackResult
from .notifier import send_run_report
from .utils import now_utc

LOG = getLogger(__name__)
FALLBACK_BRANCH = "main"


def read_compose_list(path: str) -> list[str]:
    entries: list[str] = []
    with open(path, "r", encoding="utf-8") as handle:
        for raw in handle:
            entry = raw.rstrip("\r\n").strip()
            if not entry or entry.startswith("#"):
                continue
            entries.append(entry)
    return entries


def _pull_repository(path: str) -> None:
    branch = git.current_branch(path)
    if branch is None:
        LOG.warning("Could not determine the current branch; skipping git pull in %s", path)
        return
    LOG.info("Git repository found (branch %s); pulling latest commits", branch)
    if git.pull(path, branch):
        LOG.info("Git pull succeeded: %s (branch %s)", path, branch)
    else:
        LOG.warning("Git pull failed or needs manual merge: %s (branch %s); continuing", path, branch)



def update_stack(client: DockerClient, compose_path: str, settings: Settings) -> StackResult:
    result = StackResult(compose_path)
    if not isfile(compose_path):
        LOG.warning("Compose file not found: %s", compose_path)
        result.failed_step = "missing compose file"
        return result
    compose_dir = dirname(abspath(compose_path))
    LOG.info("===== %s - %s =====", compose_path, now_utc().strftime("%Y-%m-%d %H:%M:%S"))

    if git.is_repository(compose_dir):
        _pull_repository(compose_dir)

    LOG.info("Pulling latest images")
    if not compose.pull(compose_path):
        LOG.error("Image pull failed: %s", compose_path)
        result.failed_step = "image pull"
        return result

    LOG.info("Restarting containers")
    if not (compose.down(compose_path) and compose.up(compose_path)):
        LOG.error("Container restart failed: %s", compose_path)
        result.failed_step = "restart"
        return result

    waited = wait_for_healthy(
        client,
        compose_path,
        max_wait_seconds=settings.health_timeout_seconds,
        min_uptime_seconds=settings.min_uptime_seconds,
        interval_seconds=settings.health_interval_seconds,
    )
    result.healthy = waited.ok
    result.health_report = waited.report
    if waited.ok:
        LOG.info("Update complete: %s", compose_path)
    else:
        LOG.warning("Containers did not fully initialize; continuing: %s", compose_path)
    return result


def update_stacks(client: DockerClient, settings: Settings, summary: RunSummary) -> None:
    LOG.info("Step 1: updating Docker Compose stacks")
    try:
        entries = read_compose_list(settings.compose_list)
    except FileNotFoundError:
        LOG.warning("Compose list %s not found; skipping Docker updates", settings.compose_list)
        return
    except OSError as error:
        LOG.warning("Could not read compose list %s: %s; skipping Docker updates", settings.compose_list, error)
        return

    for index, compose_path in enumerate(entries, start=1):
        LOG.info("[%s] Processing %s", index, compose_path)
        summary.stacks.append(update_stack(client, compose_path, settings))

    LOG.info(
        "Docker Compose updates finished - succeeded: %s, failed: %s, total: %s",
        summary.succeeded,
        summary.failed,
        summary.total,
    )
    if summary.failed:
        LOG.warning("Some Docker Compose updates failed")


def prune_images(client: DockerClient) -> bool:
    LOG.info("Step 2: removing unused Docker images")
    try:
        result = client.api.prune_images(filters={"dangling": False})
    except (DockerException, RequestException) as error:
        LOG.warning("Image prune failed: %s", error)
        return False
    reclaimed = result.get("SpaceReclaimed") if isinstance(result, dict) else None
    images_deleted = result.get("ImagesDeleted") if isinstance(result, dict) else None
    LOG.info("Pruned images; reclaimed %s bytes; deleted %s entries", reclaimed, len(images_deleted or []))
    return True


def _restart_from_checkout(home: str, argv: Sequence[str]) -> None:
    # the pulled checkout must shadow any installed copy of upkeep
    python_path = environ.get("PYTHONPATH")
    env = {**environ, "PYTHONPATH": pathsep.join([home, python_path]) if python_path else home}
    chdir(home)
    execve(sys.executable, [sys.executable, "-m", "upkeep", *argv[1:]], env)


def self_update(settings: Settings, argv: Sequence[str]) -> bool:
    """Pull the checkout holding upkeep and re-exec when the commit moved.

    Returns False when nothing was updated; on a new commit the process is
    replaced by ``python -m upkeep`` run from that checkout and this
    function does not return.
    """
    LOG.info("Step 0: checking for updates to upkeep")
    home = settings.home_dir
    if not git.is_repository(home):
        LOG.warning("%s is not a git repository; skipping self-update", home)
        return False

    before = git.head_commit(home)
    branch = git.current_branch(home)
    if branch is None:
        branch = FALLBACK_BRANCH
        LOG.warning("Could not determine the current branch; pulling %s", branch)
    if not git.pull(home, branch):
        LOG.warning("Git pull failed; continuing with the current version")
        return False

    after = git.head_commit(home)
    if before == after:
        LOG.info("Already up to date")
        return False
    LOG.info("upkeep was updated (%s -> %s); restarting", (before or "?")[:12], (after or "?")[:12])
    _restart_from_checkout(home, argv)
    return True


def upgrade_packages() -> None:
    LOG.info("Step 3: updating APT package lists")
    if not packages.apt_update():
        raise MaintenanceError("apt update failed")
    LOG.info("APT update complete")

    LOG.info("Step 4: upgrading APT packages")
    if not packages.apt_upgrade():
        raise MaintenanceError("apt upgrade failed")
    LOG.info("APT upgrade complete")

    LOG.info("Step 5: cleaning up packages")
    if not packages.apt_autoremove():
        LOG.warning("apt autoremove failed")
    if not packages.apt_autoclean():
        LOG.warning("apt autoclean failed")
    LOG.info("System cleanup complete")


def handle_reboot(settings: Settings, summary: RunSummary) -> None:
    LOG.info("Step 6: checking whether a reboot is required")
    if not packages.reboot_required(settings.reboot_marker):
        LOG.info("No reboot required")
        return
    summary.reboot_required = True
    LOG.warning("A system reboot is required")
    if not settings.reboot:
        LOG.info("Automatic reboot disabled; reboot manually")
        return
    if not packages.reboot_countdown(settings.reboot_delay_seconds):
        return
    # the report goes out first; nothing runs after a successful reboot
    summary.rebooting = True
    send_run_report(settings, summary)
    if not packages.reboot():
        summary.rebooting = False
        LOG.error("reboot command failed")


def run(client: DockerClient, settings: Settings, argv: Sequence[str], summary: Optional[RunSummary] = None) -> RunSummary:
    summary = summary if summary is not None else RunSummary()
    LOG.info("=== Starting system maintenance ===")
    LOG.info("Working directory: %s", settings.home_dir)
    if settings.self_update:
        self_update(settings, argv)

    update_stacks(client, settings, summary)

    if settings.prune_images:
        summary.images_pruned = prune_images(client)

    if settings.apt:
        upgrade_packages()

    handle_reboot(settings, summary)
    if not summary.rebooting:
        LOG.info("=== All maintenance tasks complete ===")
    return summary
