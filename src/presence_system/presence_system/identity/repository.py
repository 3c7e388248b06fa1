from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .model import SubjectProfile


class IdentityLookup(Protocol):
    """Read-only view of the external profile store.

    Never consulted by admission logic.
    """

    def get_profile(self, subject_id: str) -> Optional[SubjectProfile]:
        raise NotImplementedError

    def list_enrolled(self, class_id: str) -> Sequence[SubjectProfile]:
        """Subjects enrolled in a class, ordered by full name."""

        raise NotImplementedError
