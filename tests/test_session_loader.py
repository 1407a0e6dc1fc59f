"""
Integration tests for login, the parallel session load, logout and mutations.

Everything runs against the in-process fake backend from conftest.py.
"""

from __future__ import annotations

import asyncio

import pytest

from adapters.repositories import FetchSource
from core.domain.models import Ministry, PermissionModule, SiteParameters
from core.errors import (
    AuthExchangeError,
    ConflictError,
    CredentialsMissingError,
    SessionNotReadyError,
    UnknownError,
    UserNotRegisteredError,
)
from core.services.session_loader import SessionHooks, SessionLoadResult, SessionState

EMAIL = "admin@comunidad.pro"


class TestLogin:
    def test_login_loads_every_collection(self, open_context, backend) -> None:
        async def scenario():
            async with await open_context() as ctx:
                result = await ctx.session.login(EMAIL, "pw")
                return result, ctx.session.state, ctx.session.data

        result, state, data = asyncio.run(scenario())

        assert state is SessionState.READY
        assert result.warnings == []
        assert [m.name for m in data.ministries] == ["Alabanza"]
        assert [p.full_name for p in data.people] == ["Ana Gómez"]
        assert data.transactions[0].value == 150000
        assert data.users[0].email == EMAIL
        assert isinstance(data.site_params, SiteParameters)
        assert result.outcomes["site_params"].source is FetchSource.DEFAULT
        assert len(backend.exchanges) == 1

    def test_state_transitions(self, open_context) -> None:
        seen: list[SessionState] = []

        async def scenario() -> None:
            hooks = SessionHooks(state_changed=seen.append)
            async with await open_context(hooks=hooks) as ctx:
                await ctx.session.login(EMAIL, "pw")

        asyncio.run(scenario())
        assert seen[:2] == [SessionState.LOADING, SessionState.READY]

    def test_rejected_credentials_stay_logged_out(self, open_context, backend) -> None:
        backend.auth_error = "INVALID_PASSWORD"

        async def scenario():
            async with await open_context() as ctx:
                with pytest.raises(AuthExchangeError):
                    await ctx.session.login(EMAIL, "wrong")
                return ctx.session.state, ctx.tokens.has_credentials

        state, has_credentials = asyncio.run(scenario())
        assert state is SessionState.LOGGED_OUT
        assert has_credentials is False
        assert backend.api_calls("GET", "/ministries") == []

    def test_unregistered_user(self, open_context) -> None:
        async def scenario() -> None:
            async with await open_context() as ctx:
                await ctx.session.login("nadie@comunidad.pro", "pw")

        with pytest.raises(UserNotRegisteredError):
            asyncio.run(scenario())

    def test_invalid_user_record_fails_login_cleanly(self, open_context, backend) -> None:
        backend.collections["users"][0]["role"] = "superadmin"

        async def scenario():
            async with await open_context() as ctx:
                with pytest.raises(UnknownError):
                    await ctx.session.login(EMAIL, "pw")
                return ctx.session.state, ctx.tokens.has_credentials

        state, has_credentials = asyncio.run(scenario())
        assert state is SessionState.LOGGED_OUT
        assert has_credentials is False
        assert backend.api_calls("GET", "/ministries") == []

    def test_access_follows_user_permissions(self, open_context, backend) -> None:
        backend.collections["users"].append(
            {"_id": "u2", "email": "tesoreria@comunidad.pro", "permissions": ["Transacciones"]}
        )

        async def scenario():
            async with await open_context() as ctx:
                await ctx.session.login("tesoreria@comunidad.pro", "pw")
                return (
                    ctx.session.has_access(PermissionModule.TRANSACTIONS),
                    ctx.session.has_access(PermissionModule.ADMIN),
                )

        assert asyncio.run(scenario()) == (True, False)


class TestPartialFailure:
    def test_single_failing_collection_is_isolated(self, open_context, backend, store) -> None:
        backend.failing.add("persons")
        store.set("cp_people", [{"id": "p7", "fullName": "Carlos Ruiz"}])
        warnings: list[str] = []

        async def scenario() -> tuple[SessionLoadResult, SessionState]:
            async with await open_context(hooks=SessionHooks(warning=warnings.append)) as ctx:
                result = await ctx.session.login(EMAIL, "pw")
                return result, ctx.session.state

        result, state = asyncio.run(scenario())

        assert state is SessionState.READY
        assert result.failed_collections == ["people"]
        assert result.outcomes["people"].source is FetchSource.CACHE
        assert result.outcomes["people"].error.collection == "people"
        assert [p.full_name for p in result.data.people] == ["Carlos Ruiz"]
        assert [m.name for m in result.data.ministries] == ["Alabanza"]
        assert not result.all_failed
        assert warnings == result.warnings
        assert len(warnings) == 1
        assert "(people)" in warnings[0]

    def test_every_collection_failing_still_loads(self, open_context, backend) -> None:
        backend.failing.update({"ministries", "persons", "categories", "transactions", "users"})

        async def scenario() -> tuple[SessionLoadResult, SessionState]:
            async with await open_context() as ctx:
                result = await ctx.session.login(EMAIL, "pw")
                return result, ctx.session.state

        result, state = asyncio.run(scenario())
        data = result.data

        assert state is SessionState.READY
        assert result.all_failed
        assert data.ministries == []
        assert data.people == []
        assert data.transactions == []
        assert [c.name for c in data.categories] == ["Diezmos", "Ofrendas", "Servicios"]
        assert [u.id for u in data.users] == ["admin-1"]
        assert data.site_params is not None
        # one per failed collection plus the "server unreachable" notice
        assert len(result.warnings) == 6

    def test_local_only_collections_skip_network(self, open_context, settings, backend) -> None:
        settings.local_only_collections = ["site_params", "categories", "transactions"]

        async def scenario() -> SessionLoadResult:
            async with await open_context() as ctx:
                return await ctx.session.login(EMAIL, "pw")

        result = asyncio.run(scenario())

        assert backend.api_calls("GET", "/categories") == []
        assert backend.api_calls("GET", "/transactions") == []
        assert result.outcomes["categories"].source is FetchSource.DEFAULT
        assert not result.all_failed


class TestLogout:
    def test_logout_resets_and_requires_credentials(self, open_context) -> None:
        async def scenario() -> None:
            async with await open_context() as ctx:
                await ctx.session.login(EMAIL, "pw")
                ctx.session.logout()

                assert ctx.session.state is SessionState.LOGGED_OUT
                assert ctx.session.user is None
                assert ctx.session.data.people == []
                assert not ctx.tokens.has_valid_token
                with pytest.raises(CredentialsMissingError):
                    await ctx.tokens.get_token()
                with pytest.raises(SessionNotReadyError):
                    await ctx.session.load_session()

        asyncio.run(scenario())

    def test_load_superseded_by_logout_is_discarded(self, open_context, backend) -> None:
        backend.failing.add("persons")
        warnings: list[str] = []
        hooks = SessionHooks(warning=warnings.append)

        async def scenario() -> tuple[SessionLoadResult, SessionState, int]:
            async with await open_context(hooks=hooks) as ctx:

                def on_state(state: SessionState) -> None:
                    if state is SessionState.LOADING:
                        ctx.session.logout()

                hooks.state_changed = on_state
                result = await ctx.session.login(EMAIL, "pw")
                return result, ctx.session.state, len(ctx.session.data.ministries)

        result, state, ministries = asyncio.run(scenario())

        assert result.discarded
        assert state is SessionState.LOGGED_OUT
        assert ministries == 0
        assert warnings == []

    def test_logout_during_user_lookup_discards_login(self, open_context, backend) -> None:
        backend.api_delay = 0.05
        lookup = f"/users/email/{EMAIL}"

        async def scenario():
            async with await open_context() as ctx:
                task = asyncio.ensure_future(ctx.session.login(EMAIL, "pw"))
                while not backend.api_calls("GET", lookup):
                    await asyncio.sleep(0.005)
                ctx.session.logout()
                result = await task
                return result, ctx.session.state, ctx.session.user, ctx.session.data, ctx.tokens.has_credentials

        result, state, user, data, has_credentials = asyncio.run(scenario())

        assert result.discarded
        assert state is SessionState.LOGGED_OUT
        assert user is None
        assert data.ministries == []
        assert not has_credentials
        assert backend.api_calls("GET", "/ministries") == []

    def test_relogin_uses_new_credentials(self, open_context, backend) -> None:
        async def scenario() -> None:
            async with await open_context() as ctx:
                await ctx.session.login(EMAIL, "pw")
                ctx.session.logout()
                await ctx.session.login(EMAIL, "pw")

        asyncio.run(scenario())
        assert len(backend.exchanges) == 2


class TestMutations:
    def test_create_appends_to_snapshot(self, open_context) -> None:
        async def scenario():
            async with await open_context() as ctx:
                await ctx.session.login(EMAIL, "pw")
                before = ctx.session.data
                created = await ctx.session.create("ministries", Ministry(name="Jóvenes"))
                return before, ctx.session.data, created

        before, after, created = asyncio.run(scenario())

        assert created.id == "srv-2"
        assert [m.name for m in after.ministries] == ["Alabanza", "Jóvenes"]
        assert [m.name for m in before.ministries] == ["Alabanza"]

    def test_failed_mutation_leaves_state_unchanged(self, open_context, backend) -> None:
        async def scenario():
            async with await open_context() as ctx:
                await ctx.session.login(EMAIL, "pw")
                before = ctx.session.data
                backend.conflict = True
                with pytest.raises(ConflictError):
                    await ctx.session.create("ministries", Ministry(name="Alabanza"))
                return before, ctx.session.data, ctx.session.state

        before, after, state = asyncio.run(scenario())
        assert after is before
        assert state is SessionState.READY

    def test_update_and_remove(self, open_context) -> None:
        async def scenario():
            async with await open_context() as ctx:
                await ctx.session.login(EMAIL, "pw")
                await ctx.session.update("ministries", Ministry(id="m1", name="Adoración"))
                renamed = [m.name for m in ctx.session.data.ministries]
                await ctx.session.remove("ministries", "m1")
                return renamed, ctx.session.data.ministries

        renamed, remaining = asyncio.run(scenario())
        assert renamed == ["Adoración"]
        assert remaining == []

    def test_save_site_params(self, open_context, store) -> None:
        async def scenario() -> SiteParameters | None:
            async with await open_context() as ctx:
                await ctx.session.login(EMAIL, "pw")
                await ctx.session.save_site_params(SiteParameters(vision="Crecer juntos"))
                return ctx.session.data.site_params

        params = asyncio.run(scenario())
        assert params is not None and params.vision == "Crecer juntos"
        assert store.get("cp_site_params")["vision"] == "Crecer juntos"

    def test_mutations_require_session(self, open_context) -> None:
        async def scenario() -> None:
            async with await open_context() as ctx:
                await ctx.session.create("ministries", Ministry(name="X"))

        with pytest.raises(SessionNotReadyError):
            asyncio.run(scenario())
