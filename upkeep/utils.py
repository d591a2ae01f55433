import re
from datetime import datetime, timezone
from logging import FileHandler, Formatter, basicConfig, getLogger
from os import environ
from subprocess import PIPE, STDOUT, CalledProcessError, Popen, TimeoutExpired, run
from typing import Optional, Sequence

LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"
LOG = getLogger(__name__)
SHELL_LOG = getLogger("upkeep.shell")

_FRACTION = re.compile(r"\.(\d+)")


def configure_logging(level: str, log_file: Optional[str] = None) -> None:
    basicConfig(format=LOG_FORMAT, datefmt=LOG_DATE_FORMAT, level=level)
    if log_file is None:
        return
    try:
        handler = FileHandler(log_file, encoding="utf-8")
    except OSError as error:
        LOG.warning("Could not open run log %s: %s", log_file, error)
        return
    handler.setFormatter(Formatter(LOG_FORMAT, LOG_DATE_FORMAT))
    getLogger().addHandler(handler)


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse Docker's RFC 3339 timestamps, which carry nanosecond precision."""
    if not value:
        return None
    sanitized = value.strip()
    if sanitized.endswith("Z"):
        sanitized = sanitized[:-1] + "+00:00"
    # datetime only keeps microseconds
    sanitized = _FRACTION.sub(lambda match: "." + match.group(1)[:6].ljust(6, "0"), sanitized, count=1)
    try:
        parsed = datetime.fromisoformat(sanitized)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    # Docker reports never-started containers as year 1
    if parsed.year <= 1:
        return None
    return parsed


def run_command(
    args: Sequence[str],
    cwd: Optional[str] = None,
    env: Optional[dict] = None,
) -> int:
    """Run a command, logging each line of combined stdout/stderr.

    Returns the exit status; 127 when the executable cannot be started.
    """
    command_env = None
    if env:
        command_env = {**environ, **env}
    LOG.debug("Running %s", " ".join(args))
    try:
        process = Popen(
            list(args),
            cwd=cwd,
            env=command_env,
            stdout=PIPE,
            stderr=STDOUT,
            text=True,
            errors="replace",
        )
    except OSError as error:
        LOG.error("Could not run %s: %s", args[0], error)
        return 127
    with process:
        for line in process.stdout:
            line = line.rstrip()
            if line:
                SHELL_LOG.info("%s", line)
        return process.wait()


def capture_command(args: Sequence[str], cwd: Optional[str] = None, timeout: Optional[int] = None) -> Optional[str]:
    try:
        result = run(list(args), cwd=cwd, capture_output=True, text=True, check=True, timeout=timeout)
    except CalledProcessError as error:
        LOG.debug("%s failed: %s", " ".join(args), (error.stderr or "").strip() or error)
        return None
    except (OSError, TimeoutExpired) as error:
        LOG.debug("%s failed: %s", " ".join(args), error)
        return None
    return result.stdout.strip()
