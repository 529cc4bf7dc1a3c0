"""Mixins for SQLAlchemy models."""

from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, func


class TimestampMixin:
    """Mixin to add created_at and updated_at timestamp columns."""

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class PendingDeletionMixin:
    """Mixin marking a record whose cascading delete has started but not finished.

    Read paths treat a marked record as already gone; the cascade can be resumed
    by retrying the delete or by the reconciliation sweep.
    """

    deletion_started_at = Column(DateTime(timezone=True), nullable=True, index=True)

    @property
    def is_deleting(self) -> bool:
        """Check if a cascading delete is in progress."""
        return self.deletion_started_at is not None

    def mark_for_deletion(self) -> None:
        """Record that the cascading delete has started."""
        if self.deletion_started_at is None:
            self.deletion_started_at = datetime.now(UTC)
