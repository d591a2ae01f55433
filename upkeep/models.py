from dataclasses import dataclass, field
from typing import Optional


@dataclass
class StackResult:
    """Outcome of refreshing one compose stack."""
    compose_path: str
    failed_step: Optional[str] = None
    healthy: Optional[bool] = None
    health_report: str = ""

    @property
    def succeeded(self) -> bool:
        # an unhealthy stack still counts; the health wait is advisory
        return self.failed_step is None


@dataclass
class RunSummary:
    stacks: list[StackResult] = field(default_factory=list)
    images_pruned: Optional[bool] = None
    reboot_required: bool = False
    rebooting: bool = False
    error: Optional[str] = None

    @property
    def total(self) -> int:
        return len(self.stacks)

    @property
    def succeeded(self) -> int:
        return sum(1 for stack in self.stacks if stack.succeeded)

    @property
    def failed(self) -> int:
        return self.total - self.succeeded

    @property
    def unhealthy(self) -> list[StackResult]:
        return [stack for stack in self.stacks if stack.succeeded and stack.healthy is False]

    def lines(self) -> list[str]:
        lines = [f"Compose stacks: {self.succeeded} succeeded, {self.failed} failed, {self.total} total"]
        if self.images_pruned is not None:
            lines.append("Images pruned" if self.images_pruned else "Image prune failed")
        if self.reboot_required:
            lines.append("Rebooting" if self.rebooting else "Reboot required")
        return lines
