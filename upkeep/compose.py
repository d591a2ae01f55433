from logging import getLogger
from os.path import abspath, dirname
from shutil import which
from subprocess import CalledProcessError, TimeoutExpired, run

from .errors import ComposeError
from .utils import run_command

LOG = getLogger(__name__)
LIST_TIMEOUT_SECONDS = 60


def compose_command() -> list[str]:
    if which("docker") is not None:
        return ["docker", "compose"]
    return ["docker-compose"]


def _base_args(compose_path: str) -> list[str]:
    # -f must be absolute; commands run from the stack directory
    return [*compose_command(), "-f", abspath(compose_path)]


def list_stack_containers(compose_path: str) -> list[str]:
    """Return the container IDs of a stack, in the order compose lists them."""
    args = [*_base_args(compose_path), "ps", "-q"]
    try:
        result = run(
            args,
            cwd=dirname(abspath(compose_path)),
            capture_output=True,
            text=True,
            check=True,
            timeout=LIST_TIMEOUT_SECONDS,
        )
    except CalledProcessError as error:
        raise ComposeError(f"{' '.join(args)} failed: {(error.stderr or '').strip() or error}") from error
    except (OSError, TimeoutExpired) as error:
        raise ComposeError(f"{' '.join(args)} failed: {error}") from error
    return [line.strip() for line in result.stdout.splitlines() if line.strip()]


def _run(compose_path: str, *subcommand: str) -> bool:
    status = run_command([*_base_args(compose_path), *subcommand], cwd=dirname(abspath(compose_path)))
    if status != 0:
        LOG.debug("compose %s exited with %s for %s", subcommand[0], status, compose_path)
    return status == 0


def pull(compose_path: str) -> bool:
    return _run(compose_path, "pull")


def down(compose_path: str) -> bool:
    return _run(compose_path, "down")


def up(compose_path: str) -> bool:
    return _run(compose_path, "up", "-d")
