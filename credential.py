#!/usr/bin/env python3
"""
credential.py -- Cargo credential provider that hands over `gh auth token`.

cratehold authorizes every request with the caller's GitHub token. This
provider lets cargo fetch that token from the GitHub CLI instead of storing
one in credentials.toml.

Configure in .cargo/config.toml:

  [registries.my-registry]
  index = "sparse+https://crates.example.com/"
  credential-provider = ["cratehold-gh-credential"]

Protocol (cargo's credential-provider v1, one JSON object per line):
  provider -> cargo   {"v": [1]}                      hello, once on start
  cargo -> provider   {"v": 1, "kind": "get", ...}    one request per line
  provider -> cargo   {"Ok": {...}} or {"Err": {...}} one response per request

  get     -> token from `gh auth token`, cached for the cargo session and
             valid for every operation
  login   -> no-op; run `gh auth login` instead
  logout  -> no-op; run `gh auth logout` instead
  other   -> operation-not-supported

The loop ends when cargo closes stdin.
"""

import json
import subprocess
import sys
from typing import Any, Optional, TextIO

from pydantic import BaseModel, ConfigDict, ValidationError

PROTOCOL_VERSION = 1
_GH_COMMAND = ["gh", "auth", "token"]


class CredentialRequest(BaseModel):
    """One request line from cargo. Only `v` and `kind` matter here."""

    model_config = ConfigDict(extra="allow")

    v: int
    kind: str


class CredentialError(Exception):
    pass


def gh_token() -> str:
    """Return the token the GitHub CLI is logged in with."""
    try:
        result = subprocess.run(_GH_COMMAND, capture_output=True, text=True, check=False)
    except OSError as exc:
        raise CredentialError(f"could not run `gh auth token`: {exc}") from exc
    if result.returncode != 0:
        raise CredentialError(f"`gh auth token` failed: {result.stderr.strip() or result.returncode}")
    token = result.stdout.strip()
    if not token:
        raise CredentialError("`gh auth token` printed no token; run `gh auth login`")
    return token


def _error(kind: str, message: Optional[str] = None) -> dict[str, Any]:
    err: dict[str, Any] = {"kind": kind}
    if message is not None:
        err["message"] = message
        err["caused-by"] = []
    return {"Err": err}


def handle(raw: str) -> dict[str, Any]:
    """Answer one request line."""
    try:
        request = CredentialRequest.model_validate_json(raw)
    except ValidationError as exc:
        return _error("other", f"malformed credential request: {exc.errors()[0]['msg']}")
    if request.v != PROTOCOL_VERSION:
        return _error("other", f"unsupported protocol version {request.v}")

    if request.kind == "get":
        try:
            token = gh_token()
        except CredentialError as exc:
            return _error("other", str(exc))
        return {"Ok": {"kind": "get", "token": token, "cache": "session", "operation_independent": True}}
    if request.kind == "login":
        return {"Ok": {"kind": "login"}}
    if request.kind == "logout":
        return {"Ok": {"kind": "logout"}}
    return _error("operation-not-supported")


def serve(stdin: TextIO, stdout: TextIO) -> None:
    """Write the hello line, then answer requests until stdin closes."""
    stdout.write(json.dumps({"v": [PROTOCOL_VERSION]}) + "\n")
    stdout.flush()
    for line in stdin:
        if not line.strip():
            continue
        stdout.write(json.dumps(handle(line)) + "\n")
        stdout.flush()


def main() -> None:
    if "--cargo-plugin" not in sys.argv[1:]:
        print(
            "  [!] cratehold-gh-credential is a cargo credential provider; configure it in .cargo/config.toml",
            file=sys.stderr,
        )
        sys.exit(1)
    serve(sys.stdin, sys.stdout)


if __name__ == "__main__":
    main()
