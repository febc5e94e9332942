"""auth/ -- Authorization package for cratehold.

Rules (who may read/write which crate), the GitHub identity provider, the
policy engine that combines them, and the FastAPI token dependency.

Layer rule: auth/ imports only core/, cache/, stdlib and third-party
libraries. It does NOT import from api/, registry/ or storage/.
api/ imports from auth/, not the other way around.
"""
