"""
auth/rules.py -- Load the crate authorization table from YAML.

File format: a mapping from crate name to {read, write}, each an externally
tagged rule with exactly one key, `is` or `in_orgs`:

    my_crate:
      read:
        in_orgs:
          org: my-org
      write:
        is:
          user: alice

Crate names are parsed and stored under their normalized form, so `my_crate`
and `my-crate` in the file refer to the same crate. Any malformed entry is a
startup error (RulesError); the process never runs with a partial table.

The table is loaded once; there is no hot reload.

Layer rule: may import from core/ and auth/models only.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from auth.models import AuthRules, CrateRule, InOrgs, Is, Rule, freeze_rules
from core.models import CrateName, InvalidCrateName

logger = logging.getLogger("cratehold.auth.rules")


class RulesError(ValueError):
    pass


def _parse_rule(raw: Any, where: str) -> Rule:
    if not isinstance(raw, dict) or len(raw) != 1:
        raise RulesError(f"{where}: expected exactly one of 'is' or 'in_orgs'")
    ((tag, body),) = raw.items()
    if not isinstance(body, dict):
        raise RulesError(f"{where}.{tag}: expected a mapping")
    if tag == "is":
        user = body.get("user")
        if not isinstance(user, str) or not user:
            raise RulesError(f"{where}.is: 'user' must be a non-empty string")
        return Is(user=user)
    if tag == "in_orgs":
        org = body.get("org")
        if not isinstance(org, str) or not org:
            raise RulesError(f"{where}.in_orgs: 'org' must be a non-empty string")
        return InOrgs(org=org)
    raise RulesError(f"{where}: unknown rule {tag!r}")


def parse_rules(data: Any) -> AuthRules:
    """Build the immutable rule table from already-decoded YAML/JSON data."""
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise RulesError("rules file must be a mapping of crate name to rule")

    rules: dict[str, CrateRule] = {}
    for raw_name, entry in data.items():
        try:
            name = CrateName.parse(str(raw_name))
        except InvalidCrateName as exc:
            raise RulesError(f"{raw_name!r}: {exc.message}") from exc
        if not isinstance(entry, dict) or "read" not in entry or "write" not in entry:
            raise RulesError(f"{raw_name}: both 'read' and 'write' are required")
        if name.normalized in rules:
            raise RulesError(f"{raw_name}: duplicate rule for {name.normalized}")
        rules[name.normalized] = CrateRule(
            read=_parse_rule(entry["read"], f"{raw_name}.read"),
            write=_parse_rule(entry["write"], f"{raw_name}.write"),
        )
    return freeze_rules(rules)


def load_rules(path: Path) -> AuthRules:
    """Read and parse the rules file at `path`."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise RulesError(f"could not read rules file {path}: {exc}") from exc
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise RulesError(f"rules file {path} is not valid YAML: {exc}") from exc
    rules = parse_rules(data)
    logger.info("Loaded %d crate rule(s) from %s", len(rules), path)
    return rules
