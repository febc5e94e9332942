"""
auth/policy.py -- Per-crate read/write authorization with a TTL decision cache.

Decision procedure for readable()/writable():
  1. Look up the crate's rule by normalized name. No rule -> deny. There is
     no default-allow.
  2. Evaluate the rule's read or write side against the caller identity
     behind the bearer token (one or two identity-provider round trips).
  3. Any IdentityError, or any other failure while evaluating -> deny.
     Fail closed, never open.

Both allow and deny outcomes are cached per (normalized name, token) in
separate read and write caches for 60 seconds (see cache/store.py). Two
concurrent misses for the same key each do their own round trips; the second
insert simply replaces the first.

as_registry_user() is uncached: every call is a fresh lookup.

Layer rule: may import from core/, cache/ and auth/. No imports from api/,
registry/ or storage/.
"""

from __future__ import annotations

import logging
from typing import Optional

from auth.github import IdentityError, IdentityProvider
from auth.models import AuthRules, InOrgs, Is, RegistryUser, Rule
from cache.store import CacheKey, DecisionCache
from core.errors import AuthError, NotFound, forbidden
from core.models import CrateName
from core.pipeline import gather_all

logger = logging.getLogger("cratehold.auth.policy")


async def evaluate_rule(rule: Rule, token: str, identity: IdentityProvider) -> bool:
    """Return True iff the identity behind `token` satisfies `rule`.

    Raises IdentityError when the provider cannot answer; callers decide
    what that means (AuthPolicy denies).
    """
    if isinstance(rule, Is):
        return await identity.current_login(token) == rule.user
    if isinstance(rule, InOrgs):
        login, members = await gather_all([identity.current_login(token), identity.org_members(token, rule.org)])
        return login in members
    raise TypeError(f"unknown rule variant: {rule!r}")


class AuthPolicy:
    def __init__(
        self,
        rules: AuthRules,
        identity: IdentityProvider,
        read_cache: Optional[DecisionCache] = None,
        write_cache: Optional[DecisionCache] = None,
    ) -> None:
        self.rules = rules
        self.identity = identity
        self.read_cache = read_cache if read_cache is not None else DecisionCache()
        self.write_cache = write_cache if write_cache is not None else DecisionCache()

    async def readable(self, token: str, name: CrateName) -> None:
        """Return if `token` may read `name`; raise AuthError otherwise."""
        await self._decide(self.read_cache, "read", token, name)

    async def writable(self, token: str, name: CrateName) -> None:
        """Return if `token` may write `name`; raise AuthError otherwise."""
        await self._decide(self.write_cache, "write", token, name)

    async def _decide(self, cache: DecisionCache, op: str, token: str, name: CrateName) -> None:
        key = CacheKey(crate_name=name.normalized, token=token)
        decision = cache.get(key)
        if decision is None:
            logger.debug("%s decision cache miss for %s", op, name.normalized)
            decision = await self._evaluate(op, key)
            cache.set(key, decision)
        if not decision:
            raise forbidden()

    async def _evaluate(self, op: str, key: CacheKey) -> bool:
        crate_rule = self.rules.get(key.crate_name)
        if crate_rule is None:
            return False
        rule = crate_rule.read if op == "read" else crate_rule.write
        try:
            return await evaluate_rule(rule, key.token, self.identity)
        except IdentityError as exc:
            logger.warning("Denying %s on %s: identity provider error: %s", op, key.crate_name, exc)
            return False
        except Exception:
            logger.warning("Denying %s on %s: rule evaluation failed", op, key.crate_name, exc_info=True)
            return False

    async def as_registry_user(self, token: str, login: str) -> RegistryUser:
        try:
            return await self.identity.get_user(token, login)
        except IdentityError as exc:
            if exc.status == 404:
                raise NotFound("user not found", contexts=[login]) from exc
            raise AuthError("forbidden", verbose_message=str(exc), contexts=[login]) from exc
