"""
core/errors.py -- Error taxonomy shared by every layer of cratehold.

Every failure that can reach a client is a RegistryError subclass. The class
carries the HTTP status it maps to, a client-safe message, an operator-only
verbose message, and a list of context strings. api/main.py turns any
RegistryError into the {type, message, contexts} envelope; nothing below the
api/ layer imports FastAPI.

  ValidationError -> 400  bad crate name, malformed publish envelope
  Conflict        -> 400  duplicate publish of an existing version
  AuthError       -> 403  forbidden, missing rule, identity-provider failure
  NotFound        -> 404  missing record, archive, owner, unsupported search
  UpstreamError   -> 500  object-store / identity-provider transport failure
                          (502 when the failure is a bad proxy header)

Layer rule: core/ is the kernel. This module may not import from api/, auth/,
cache/, registry/, or storage/.
"""

from __future__ import annotations

from collections.abc import Iterable


class RegistryError(Exception):
    status_code: int = 500

    def __init__(
        self,
        message: str,
        verbose_message: str | None = None,
        contexts: Iterable[str] = (),
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        # May contain bucket names, upstream bodies, etc. Logged, never returned.
        self.verbose_message = verbose_message if verbose_message is not None else message
        self.contexts = list(contexts)
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {"type": self.status_code, "message": self.message, "contexts": self.contexts}


class ValidationError(RegistryError):
    status_code = 400


class Conflict(RegistryError):
    status_code = 400


class AuthError(RegistryError):
    status_code = 403


class NotFound(RegistryError):
    status_code = 404


class UpstreamError(RegistryError):
    status_code = 500


def forbidden() -> AuthError:
    return AuthError("forbidden")
