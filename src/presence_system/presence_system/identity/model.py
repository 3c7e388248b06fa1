from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class SubjectProfile:
    """Display data for a subject (student); presentation only."""

    subject_id: str
    full_name: str
    registration_number: str = ""

    @classmethod
    def unknown(cls, subject_id: str) -> "SubjectProfile":
        return cls(subject_id=subject_id, full_name=subject_id)
