"""auth/ -- Credential and session management for PrefTrack.

Layer rule: auth/ imports stdlib, third-party libraries and core.db (the
shared engine factory). It does NOT import from api/, prefs/, or any other
core/ module; configuration arrives through constructors.
api/ imports from auth/, not the other way around.
"""
