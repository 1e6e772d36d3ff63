"""Core data models for nodegc."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class KeepReason(str, Enum):
    """Why an instance was not classified as orphaned."""

    WITHIN_RESOLUTION_WINDOW = "within_resolution_window"
    OWNED_BY_MACHINE = "owned_by_machine"
    LINKED_BY_MACHINE = "linked_by_machine"
    RECENTLY_LINKED = "recently_linked"


class FailedDeletion(BaseModel):
    """A deletion that did not succeed."""

    instance_id: str
    provider_id: str | None = None
    cause: str


class DeleteOutcome(BaseModel):
    """Result of deleting one orphaned instance and its node."""

    instance_id: str
    provider_id: str
    success: bool
    cause: str | None = None
    node_deleted: bool = False
    node_error: str | None = None


class PassResult(BaseModel):
    """Summary of one garbage collection pass.

    A pass that could not list its inputs never produces a PassResult; it
    raises ``PassFailedError`` instead.
    """

    instances_scanned: int = 0
    orphaned_found: int = 0
    deleted: list[str] = Field(default_factory=list)
    failed: list[FailedDeletion] = Field(default_factory=list)
    node_deletion_failures: list[FailedDeletion] = Field(default_factory=list)
    unprocessed: list[str] = Field(default_factory=list)
    orphaned: list[str] = Field(default_factory=list)
    kept: dict[KeepReason, int] = Field(default_factory=dict)
    dry_run: bool = False
    started_at: datetime = Field(default_factory=utcnow)
    duration_seconds: float = 0.0

    @property
    def succeeded(self) -> bool:
        """Whether every orphan found was deleted."""
        return not self.failed and not self.unprocessed

    def add_outcome(self, outcome: DeleteOutcome) -> None:
        """Fold one instance's deletion outcome into the pass totals."""
        if outcome.success:
            self.deleted.append(outcome.instance_id)
        else:
            self.failed.append(
                FailedDeletion(
                    instance_id=outcome.instance_id,
                    provider_id=outcome.provider_id,
                    cause=outcome.cause or "unknown error",
                )
            )

        if outcome.node_error:
            self.node_deletion_failures.append(
                FailedDeletion(
                    instance_id=outcome.instance_id,
                    provider_id=outcome.provider_id,
                    cause=outcome.node_error,
                )
            )
