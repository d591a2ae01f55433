from http.client import HTTPConnection, HTTPSConnection
from json import dumps
from logging import getLogger
from socket import gethostname
from typing import Optional
from urllib.parse import urlencode, urlsplit

from .config import Settings
from .models import RunSummary

LOG = getLogger(__name__)
URGENT_STATUSES = {"aborted", "failed"}


def run_status(summary: RunSummary) -> str:
    if summary.error is not None:
        return "aborted"
    if summary.rebooting:
        return "rebooting"
    if summary.failed:
        return "failed"
    if summary.unhealthy:
        return "degraded"
    return "ok"


def build_message(summary: RunSummary) -> str:
    lines = []
    if summary.error is not None:
        lines.append(f"Maintenance aborted: {summary.error}")
    lines.extend(summary.lines())
    failed = [stack for stack in summary.stacks if not stack.succeeded]
    if failed:
        lines.append("Failed stacks:")
        lines.extend(f"  - {stack.compose_path} ({stack.failed_step})" for stack in failed)
    if summary.unhealthy:
        lines.append("Not healthy after restart:")
        for stack in summary.unhealthy:
            lines.append(f"  - {stack.compose_path}")
            lines.extend(f"  {line}" for line in stack.health_report.splitlines())
    return "\n".join(lines)


def _webhook_payload(summary: RunSummary, hostname: str, title: str, message: str) -> dict:
    return {
        "host": hostname,
        "status": run_status(summary),
        "title": title,
        "message": message,
        "stacks": [
            {
                "compose_path": stack.compose_path,
                "succeeded": stack.succeeded,
                "failed_step": stack.failed_step,
                "healthy": stack.healthy,
            }
            for stack in summary.stacks
        ],
        "images_pruned": summary.images_pruned,
        "reboot_required": summary.reboot_required,
        "rebooting": summary.rebooting,
        "error": summary.error,
    }


def _post(url: str, body: bytes, content_type: str, service: str) -> None:
    endpoint = urlsplit(url)
    if endpoint.scheme == "https":
        connection = HTTPSConnection(endpoint.netloc)
    else:
        connection = HTTPConnection(endpoint.netloc)
    path = endpoint.path or "/"
    if endpoint.query:
        path = f"{path}?{endpoint.query}"
    try:
        connection.request("POST", path, body=body, headers={"Content-Type": content_type})
        response = connection.getresponse()
        if response.status >= 300:
            LOG.warning("%s returned %s: %s", service, response.status, response.reason)
    except OSError as error:
        LOG.warning("Failed to send %s notification: %s", service, error)
    finally:
        connection.close()


def notify_pushover(settings: Settings, summary: RunSummary, title: str, message: str) -> None:
    if settings.pushover_token is None or settings.pushover_user is None:
        LOG.debug("Pushover disabled; missing token or user")
        return
    body = urlencode(
        {
            "token": settings.pushover_token,
            "user": settings.pushover_user,
            "title": title,
            "message": message,
            "priority": 1 if run_status(summary) in URGENT_STATUSES else 0,
        }
    ).encode("ascii")
    _post(settings.pushover_api, body, "application/x-www-form-urlencoded", "Pushover")


def notify_webhook(settings: Settings, summary: RunSummary, title: str, message: str, hostname: str) -> None:
    if settings.webhook_url is None:
        LOG.debug("Webhook disabled; missing URL")
        return
    body = dumps(_webhook_payload(summary, hostname, title, message)).encode("utf-8")
    _post(settings.webhook_url, body, "application/json", "Webhook")


def send_run_report(settings: Settings, summary: RunSummary, hostname: Optional[str] = None) -> None:
    """Report a run to every configured channel; failures are only logged."""
    hostname = hostname or gethostname()
    title = f"upkeep on {hostname}: {run_status(summary)}"
    message = build_message(summary)
    notify_pushover(settings, summary, title, message)
    notify_webhook(settings, summary, title, message, hostname)
