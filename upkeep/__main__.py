import sys
from logging import getLogger
from os import geteuid, makedirs
from os.path import join
from typing import Optional

from docker import DockerClient
from docker.errors import DockerException

from .config import Settings, load_settings
from .errors import MaintenanceError
from .maintenance import run
from .models import RunSummary
from .notifier import send_run_report
from .utils import configure_logging, now_utc

LOG = getLogger(__name__)


def build_client(settings: Settings) -> DockerClient:
    try:
        return DockerClient(base_url=settings.docker_host)
    except DockerException as error:
        raise SystemExit(f"Unable to connect to Docker: {error}") from error


def prepare_run_log(settings: Settings) -> Optional[str]:
    try:
        makedirs(settings.log_dir, exist_ok=True)
    except OSError as error:
        LOG.warning("Could not create log directory %s: %s", settings.log_dir, error)
        return None
    return join(settings.log_dir, f"run-{now_utc().astimezone().strftime('%Y%m%d-%H%M%S')}.log")


def main() -> None:
    settings = load_settings()
    configure_logging(settings.log_level)
    if geteuid() != 0 and not settings.allow_non_root:
        LOG.error("upkeep must run as root; use sudo")
        raise SystemExit(1)

    run_log = prepare_run_log(settings)
    if run_log is not None:
        configure_logging(settings.log_level, run_log)
        LOG.info("Run log: %s", run_log)

    client = build_client(settings)
    summary = RunSummary()
    try:
        run(client, settings, sys.argv, summary)
    except MaintenanceError as error:
        LOG.error("%s", error)
        summary.error = str(error)
        send_run_report(settings, summary)
        raise SystemExit(1) from error
    finally:
        client.close()
    if not summary.rebooting:
        send_run_report(settings, summary)


if __name__ == "__main__":
    main()
