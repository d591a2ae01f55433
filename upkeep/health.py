from dataclasses import dataclass
from logging import Logger, getLogger
from time import sleep
from typing import NamedTuple, Optional

from docker import DockerClient
from docker.errors import DockerException
from requests.exceptions import RequestException

from .compose import list_stack_containers
from .config import DEFAULT_HEALTH_INTERVAL_SECONDS, DEFAULT_HEALTH_TIMEOUT_SECONDS, DEFAULT_MIN_UPTIME_SECONDS
from .errors import ComposeError
from .utils import now_utc, parse_timestamp

LOG = getLogger(__name__)

NO_HEALTHCHECK_VALUES = {"", "none", "no value", "<no value>"}


@dataclass(frozen=True)
class ContainerState:
    container_id: str
    name: str
    status: str
    health: Optional[str] = None
    started_at: Optional[str] = None
    error: Optional[str] = None

    @property
    def has_healthcheck(self) -> bool:
        return self.health is not None and self.health.strip().lower() not in NO_HEALTHCHECK_VALUES


@dataclass(frozen=True)
class PollResult:
    name: str
    healthy: bool
    detail: str


class WaitResult(NamedTuple):
    ok: bool
    report: str
    results: list[PollResult]


def _short_id(container_id: str) -> str:
    return container_id[:12]


def inspect_container(client: DockerClient, container_id: str) -> ContainerState:
    try:
        attrs = client.api.inspect_container(container_id)
    except (DockerException, RequestException) as error:
        LOG.debug("Inspect failed for %s: %s", container_id, error)
        return ContainerState(
            container_id=container_id,
            name=_short_id(container_id),
            status="unknown",
            error=str(error),
        )
    state = attrs.get("State") or {}
    health = (state.get("Health") or {}).get("Status")
    name = (attrs.get("Name") or "").lstrip("/") or _short_id(container_id)
    return ContainerState(
        container_id=container_id,
        name=name,
        status=state.get("Status") or "unknown",
        health=health,
        started_at=state.get("StartedAt"),
    )


def classify(state: ContainerState, min_uptime_seconds: int) -> PollResult:
    if state.error is not None:
        return PollResult(state.name, False, f"unknown (inspect failed: {state.error})")
    if state.has_healthcheck:
        health = state.health.strip()
        return PollResult(state.name, health == "healthy", health)
    if state.status != "running":
        return PollResult(state.name, False, f"{state.status} (not running)")
    started = parse_timestamp(state.started_at)
    if started is None:
        LOG.debug("Unreadable StartedAt %r for %s", state.started_at, state.name)
        return PollResult(state.name, True, "running (uptime: unknown, no healthcheck)")
    uptime = max(0, int((now_utc() - started).total_seconds()))
    if uptime < min_uptime_seconds:
        return PollResult(
            state.name, False, f"running (uptime: {uptime}s, waiting for {min_uptime_seconds}s)"
        )
    return PollResult(state.name, True, f"running (uptime: {uptime}s, no healthcheck)")


def format_report(results: list[PollResult]) -> str:
    return "\n".join(f"  - {result.name}: {result.detail}" for result in results)


def poll_once(client: DockerClient, container_ids: list[str], min_uptime_seconds: int) -> list[PollResult]:
    return [classify(inspect_container(client, container_id), min_uptime_seconds) for container_id in container_ids]


def wait_for_healthy(
    client: DockerClient,
    compose_path: str,
    max_wait_seconds: int = DEFAULT_HEALTH_TIMEOUT_SECONDS,
    min_uptime_seconds: int = DEFAULT_MIN_UPTIME_SECONDS,
    interval_seconds: int = DEFAULT_HEALTH_INTERVAL_SECONDS,
    logger: Optional[Logger] = None,
) -> WaitResult:
    """Block until every container of the stack is healthy or the wait times out.

    Containers with a health check must report ``healthy``. Containers
    without one must be running for at least ``min_uptime_seconds``. The
    result is advisory; it never raises for runtime query failures.
    """
    log = logger or LOG
    log.info("Waiting for containers of %s to initialize", compose_path)
    try:
        container_ids = list_stack_containers(compose_path)
    except ComposeError as error:
        log.error("Could not list containers for %s: %s", compose_path, error)
        return WaitResult(False, "", [])
    if not container_ids:
        log.warning("No running containers for %s", compose_path)
        return WaitResult(True, "", [])

    elapsed = 0
    results: list[PollResult] = []
    while elapsed < max_wait_seconds:
        results = poll_once(client, container_ids, min_uptime_seconds)
        report = format_report(results)
        if all(result.healthy for result in results):
            log.info("All containers are healthy\n%s", report)
            return WaitResult(True, report, results)
        log.info("Waiting... %s/%ss elapsed\n%s", elapsed, max_wait_seconds, report)
        sleep(interval_seconds)
        elapsed += interval_seconds

    report = format_report(results)
    log.warning("Gave up after %ss; current state:\n%s", max_wait_seconds, report)
    return WaitResult(False, report, results)
