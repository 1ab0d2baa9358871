"""
api/routes/v1/teachers.py -- Teacher roster views.

Routes:
  GET /api/v1/teachers/dashboard                          -- all students with preferences
  GET /api/v1/teachers/students/{student_id}/preferences  -- one student's preferences

Both routes require the teacher role. Read-only: teachers never write
student preferences.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request

from api.models import DashboardResponse, PreferencesOut, PreferencesResponse, StudentList, StudentRow
from auth.dependencies import require_roles
from auth.models import Identity, Role
from prefs.store import PreferenceStore

router = APIRouter()

_require_teacher = require_roles(Role.teacher)


@router.get("/teachers/dashboard", response_model=DashboardResponse)
async def dashboard(
    request: Request,
    identity: Identity = Depends(_require_teacher),
) -> DashboardResponse:
    """Every student account, including those who have not saved preferences yet."""
    store: PreferenceStore = request.app.state.preference_store
    rows = [
        StudentRow(
            user_id=s.user_id,
            username=s.username,
            favorite_subjects=s.favorite_subjects,
            dreams=s.dreams,
            dream_job=s.dream_job,
            preferences_created_at=s.preferences_created_at,
            preferences_updated_at=s.preferences_updated_at,
        )
        for s in store.list_students(Role.student.value)
    ]
    return DashboardResponse(results=len(rows), data=StudentList(students=rows))


@router.get("/teachers/students/{student_id}/preferences", response_model=PreferencesResponse)
async def student_preferences(
    request: Request,
    student_id: int,
    identity: Identity = Depends(_require_teacher),
) -> PreferencesResponse:
    """One student's preferences. 404 for an unknown id, 403 if the id is not a student."""
    store: PreferenceStore = request.app.state.preference_store

    role = store.get_user_role(student_id)
    if role is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "Student not found."},
        )
    if role != Role.student.value:
        raise HTTPException(
            status_code=403,
            detail={"code": "not_a_student", "message": "User is not a student."},
        )

    prefs = store.get(student_id)
    if prefs is None:
        return PreferencesResponse(
            message="No preferences set by this student yet.",
            data=PreferencesOut(favorite_subjects=[], dreams="", dream_job=""),
        )
    return PreferencesResponse(
        data=PreferencesOut(
            favorite_subjects=prefs.favorite_subjects,
            dreams=prefs.dreams,
            dream_job=prefs.dream_job,
            created_at=prefs.created_at,
            updated_at=prefs.updated_at,
        )
    )
