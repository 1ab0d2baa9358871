"""
prefs/models.py -- Domain dataclasses for student preferences.

These are pure data containers with zero logic. Persistence and JSON
encoding of the subject list live in prefs/store.py.

Separation of concerns: prefs/ never imports auth/. It knows a user only by
integer id and reads the users table by name for the teacher roster.
"""

from dataclasses import dataclass, field
from typing import Optional

MAX_DREAMS_LENGTH = 500
MAX_DREAM_JOB_LENGTH = 100
MAX_SUBJECT_LENGTH = 50


@dataclass
class StudentPreferences:
    """One student's preferences. Timestamps are None until first saved."""

    user_id: int
    favorite_subjects: list[str] = field(default_factory=list)
    dreams: str = ""
    dream_job: str = ""
    created_at: Optional[str] = None  # ISO 8601, set by store on insert
    updated_at: Optional[str] = None


@dataclass
class StudentSummary:
    """One row of the teacher dashboard: a student and whatever they have saved."""

    user_id: int
    username: str
    favorite_subjects: list[str] = field(default_factory=list)
    dreams: Optional[str] = None
    dream_job: Optional[str] = None
    preferences_created_at: Optional[str] = None
    preferences_updated_at: Optional[str] = None
