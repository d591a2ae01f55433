from dataclasses import dataclass
from os import getenv
from os.path import abspath, dirname, join
from typing import Optional

PROJECT_DIR = dirname(dirname(abspath(__file__)))
DEFAULT_DOCKER_HOST = "unix://var/run/docker.sock"
DEFAULT_PUSHOVER_API = "https://api.pushover.net/1/messages.json"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_COMPOSE_LIST_NAME = "compose-list.txt"
DEFAULT_LOG_DIR_NAME = "log"
DEFAULT_HEALTH_TIMEOUT_SECONDS = 300
DEFAULT_MIN_UPTIME_SECONDS = 15
DEFAULT_HEALTH_INTERVAL_SECONDS = 5
DEFAULT_REBOOT_DELAY_SECONDS = 10
DEFAULT_REBOOT_MARKER = "/var/run/reboot-required"


@dataclass(frozen=True)
class Settings:
    docker_host: str
    home_dir: str
    compose_list: str
    log_dir: str
    log_level: str
    health_timeout_seconds: int
    min_uptime_seconds: int
    health_interval_seconds: int
    self_update: bool
    prune_images: bool
    apt: bool
    reboot: bool
    reboot_delay_seconds: int
    reboot_marker: str
    allow_non_root: bool
    pushover_token: Optional[str]
    pushover_user: Optional[str]
    pushover_api: str
    webhook_url: Optional[str]


def load_settings() -> Settings:
    home_dir = getenv("UPKEEP_HOME") or PROJECT_DIR
    return Settings(
        docker_host=getenv("DOCKER_HOST", DEFAULT_DOCKER_HOST),
        home_dir=home_dir,
        compose_list=getenv("UPKEEP_COMPOSE_LIST") or join(home_dir, DEFAULT_COMPOSE_LIST_NAME),
        log_dir=getenv("UPKEEP_LOG_DIR") or join(home_dir, DEFAULT_LOG_DIR_NAME),
        log_level=getenv("UPKEEP_LOG_LEVEL", DEFAULT_LOG_LEVEL).upper(),
        health_timeout_seconds=_env_int("UPKEEP_HEALTH_TIMEOUT_SECONDS", DEFAULT_HEALTH_TIMEOUT_SECONDS, minimum=0),
        min_uptime_seconds=_env_int("UPKEEP_MIN_UPTIME_SECONDS", DEFAULT_MIN_UPTIME_SECONDS, minimum=0),
        health_interval_seconds=_env_int("UPKEEP_HEALTH_INTERVAL_SECONDS", DEFAULT_HEALTH_INTERVAL_SECONDS, minimum=1),
        self_update=_env_bool("UPKEEP_SELF_UPDATE", True),
        prune_images=_env_bool("UPKEEP_PRUNE_IMAGES", True),
        apt=_env_bool("UPKEEP_APT", True),
        reboot=_env_bool("UPKEEP_REBOOT", True),
        reboot_delay_seconds=_env_int("UPKEEP_REBOOT_DELAY_SECONDS", DEFAULT_REBOOT_DELAY_SECONDS, minimum=0),
        reboot_marker=getenv("UPKEEP_REBOOT_MARKER", DEFAULT_REBOOT_MARKER),
        allow_non_root=_env_bool("UPKEEP_ALLOW_NON_ROOT", False),
        pushover_token=getenv("UPKEEP_PUSHOVER_TOKEN"),
        pushover_user=getenv("UPKEEP_PUSHOVER_USER"),
        pushover_api=getenv("UPKEEP_PUSHOVER_API", DEFAULT_PUSHOVER_API),
        webhook_url=getenv("UPKEEP_WEBHOOK_URL"),
    )


def _env_bool(name: str, default: bool) -> bool:
    value = getenv(name)
    if value is None:
        return default
    lowered = value.strip().lower()
    return lowered in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int, minimum: Optional[int] = None) -> int:
    value = getenv(name)
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    if minimum is not None and parsed < minimum:
        return default
    return parsed
