"""Unit tests for Principal and SecurityContext."""

from __future__ import annotations

import asyncio

import pytest

from api_standards.kernel.errors import ForbiddenError, UnauthorizedError
from api_standards.kernel.security import Principal, SecurityContext


@pytest.fixture(autouse=True)
def _clear_context():
    SecurityContext.clear()
    yield
    SecurityContext.clear()


class TestPrincipal:
    def test_from_claims(self):
        p = Principal.from_claims({"sub": "u1", "roles": ["admin", "user"], "tenant_id": "t1"})
        assert p.subject == "u1"
        assert p.has_role("admin")
        assert not p.has_role("root")
        assert p.claim("tenant_id") == "t1"

    def test_single_role_string(self):
        assert Principal.from_claims({"sub": "u1", "roles": "admin"}).roles == frozenset({"admin"})

    def test_missing_subject(self):
        assert Principal.from_claims({}).subject == ""

    def test_empty_claim_is_none(self):
        p = Principal("u1", {"tenant_id": "", "n": 5})
        assert p.claim("tenant_id") is None
        assert p.claim("absent") is None
        assert p.claim("n") == "5"


class TestSecurityContext:
    def test_default_is_none(self):
        assert SecurityContext.get_current() is None

    def test_set_and_reset(self):
        token = SecurityContext.set_current(Principal("u1"))
        assert SecurityContext.require().subject == "u1"
        SecurityContext.reset(token)
        assert SecurityContext.get_current() is None

    def test_require_raises_when_absent(self):
        with pytest.raises(UnauthorizedError):
            SecurityContext.require()

    def test_require_role(self):
        with SecurityContext.scoped(Principal("u1", roles=frozenset({"admin"}))):
            assert SecurityContext.require_role("admin").subject == "u1"
            with pytest.raises(ForbiddenError) as info:
                SecurityContext.require_role("auditor")
        assert info.value.error_details == {"reason": "missing role 'auditor'"}

    def test_scoped_restores_previous(self):
        SecurityContext.set_current(Principal("outer"))
        with SecurityContext.scoped(Principal("inner")):
            assert SecurityContext.require().subject == "inner"
        assert SecurityContext.require().subject == "outer"

    def test_tasks_are_isolated(self):
        async def worker(name: str) -> str:
            SecurityContext.set_current(Principal(name))
            await asyncio.sleep(0)
            return SecurityContext.require().subject

        async def run() -> list[str]:
            return list(await asyncio.gather(worker("a"), worker("b")))

        assert asyncio.run(run()) == ["a", "b"]
        assert SecurityContext.get_current() is None
