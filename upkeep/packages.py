from logging import getLogger
from os.path import exists
from time import sleep

from .utils import run_command

LOG = getLogger(__name__)
NONINTERACTIVE_ENV = {"DEBIAN_FRONTEND": "noninteractive"}


def apt_update() -> bool:
    return run_command(["apt", "update"]) == 0


def apt_upgrade() -> bool:
    return run_command(["apt", "upgrade", "-y"], env=NONINTERACTIVE_ENV) == 0


def apt_autoremove() -> bool:
    return run_command(["apt", "autoremove", "-y"], env=NONINTERACTIVE_ENV) == 0


def apt_autoclean() -> bool:
    return run_command(["apt", "autoclean", "-y"]) == 0


def reboot_required(marker: str) -> bool:
    return exists(marker)


def reboot_countdown(seconds: int) -> bool:
    """Count down to a reboot; returns False when the operator interrupts."""
    try:
        for remaining in range(seconds, 0, -1):
            LOG.info("Rebooting in %ss (Ctrl+C to cancel)", remaining)
            sleep(1)
    except KeyboardInterrupt:
        LOG.warning("Reboot cancelled")
        return False
    return True


def reboot() -> bool:
    LOG.info("Rebooting system")
    return run_command(["reboot"]) == 0
