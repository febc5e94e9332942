"""
tests/test_rules.py -- Rules file parsing and loading.
"""

from __future__ import annotations

import pytest

from auth.models import CrateRule, InOrgs, Is
from auth.rules import RulesError, load_rules, parse_rules

RULES_YAML = """\
my_crate:
  read:
    in_orgs: {org: my-org}
  write:
    is: {user: alice}
tools:
  read:
    is:
      user: bob
  write:
    is:
      user: bob
"""


def test_parse_builds_rules_under_normalized_names() -> None:
    rules = parse_rules({"my_crate": {"read": {"in_orgs": {"org": "acme"}}, "write": {"is": {"user": "alice"}}}})
    assert list(rules) == ["my-crate"]
    assert rules["my-crate"] == CrateRule(read=InOrgs("acme"), write=Is("alice"))


def test_rules_table_is_read_only() -> None:
    rules = parse_rules({"a": {"read": {"is": {"user": "x"}}, "write": {"is": {"user": "x"}}}})
    with pytest.raises(TypeError):
        rules["b"] = rules["a"]  # type: ignore[index]


def test_empty_document_is_empty_table() -> None:
    assert len(parse_rules(None)) == 0


@pytest.mark.parametrize(
    "data",
    [
        ["not", "a", "mapping"],
        {"1bad": {"read": {"is": {"user": "a"}}, "write": {"is": {"user": "a"}}}},
        {"ok": {"read": {"is": {"user": "a"}}}},
        {"ok": {"read": {"owner": {"user": "a"}}, "write": {"is": {"user": "a"}}}},
        {"ok": {"read": {"is": {"user": "a"}, "in_orgs": {"org": "b"}}, "write": {"is": {"user": "a"}}}},
        {"ok": {"read": {"is": {"user": ""}}, "write": {"is": {"user": "a"}}}},
        {"ok": {"read": {"in_orgs": "acme"}, "write": {"is": {"user": "a"}}}},
    ],
)
def test_malformed_rules_are_rejected(data) -> None:
    with pytest.raises(RulesError):
        parse_rules(data)


def test_spellings_that_normalize_together_are_duplicates() -> None:
    entry = {"read": {"is": {"user": "a"}}, "write": {"is": {"user": "a"}}}
    with pytest.raises(RulesError, match="duplicate"):
        parse_rules({"my_crate": entry, "my-crate": entry})


def test_load_rules_from_yaml(tmp_path) -> None:
    path = tmp_path / "rules.yaml"
    path.write_text(RULES_YAML, encoding="utf-8")
    rules = load_rules(path)
    assert rules["my-crate"].read == InOrgs("my-org")
    assert rules["tools"].write == Is("bob")


def test_load_rules_missing_file(tmp_path) -> None:
    with pytest.raises(RulesError, match="could not read"):
        load_rules(tmp_path / "absent.yaml")


def test_load_rules_invalid_yaml(tmp_path) -> None:
    path = tmp_path / "rules.yaml"
    path.write_text("my_crate: [unclosed", encoding="utf-8")
    with pytest.raises(RulesError, match="not valid YAML"):
        load_rules(path)
