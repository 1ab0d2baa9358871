"""
api/routes/v1/students.py -- A student's own preferences.

Routes:
  GET  /api/v1/students/preferences  -- saved preferences, or empty defaults
  POST /api/v1/students/preferences  -- create or replace preferences

Both routes require the student role. The student id always comes from the
session identity, never from the request, so one student cannot read or
overwrite another's record.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from api.models import PreferencesOut, PreferencesResponse, PreferencesUpdate
from auth.dependencies import require_roles
from auth.models import Identity, Role
from prefs.models import StudentPreferences
from prefs.store import PreferenceStore

router = APIRouter()

_require_student = require_roles(Role.student)


def _to_out(prefs: StudentPreferences) -> PreferencesOut:
    return PreferencesOut(
        favorite_subjects=prefs.favorite_subjects,
        dreams=prefs.dreams,
        dream_job=prefs.dream_job,
        created_at=prefs.created_at,
        updated_at=prefs.updated_at,
    )


@router.get("/students/preferences", response_model=PreferencesResponse)
async def get_preferences(
    request: Request,
    identity: Identity = Depends(_require_student),
) -> PreferencesResponse:
    """Return the caller's preferences. A student who never saved gets empty values, not 404."""
    store: PreferenceStore = request.app.state.preference_store
    prefs = store.get(identity.id) or StudentPreferences(user_id=identity.id)
    return PreferencesResponse(data=_to_out(prefs))


@router.post("/students/preferences", response_model=PreferencesResponse)
async def upsert_preferences(
    request: Request,
    body: PreferencesUpdate,
    identity: Identity = Depends(_require_student),
) -> PreferencesResponse:
    store: PreferenceStore = request.app.state.preference_store
    prefs = store.upsert(identity.id, body.favorite_subjects, body.dreams, body.dream_job)
    return PreferencesResponse(message="Preferences saved successfully", data=_to_out(prefs))
