"""auth/ -- Credential store, authenticator and access guard for TaskGuard.

Layer rule: auth/ imports stdlib, third-party libraries and core/ (config,
engine helpers). fastapi appears only in guard.py, the dependency-injection
seam. It does NOT import from api/ or tasks/.
api/ imports from auth/, not the other way around.
"""
