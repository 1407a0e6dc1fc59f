"""Session data loading and state.

After a successful login every domain collection (ministries, people,
categories, transactions, users, site parameters) is fetched concurrently and
published to consumers as one immutable `SessionData` snapshot. Logging out
resets the snapshot and forgets the token.

Ordering rules:
- the six fetches run together with no relative ordering; one failing
  collection falls back to its local snapshot and never blocks the others;
- the snapshot is swapped in a single assignment once every fetch settled, so
  consumers never mix collections from two sessions;
- each login/logout bumps a generation counter and a load that settles under
  an older generation is discarded instead of written.
"""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from adapters.repositories import COLLECTIONS, FetchOutcome, FetchSource, Repositories
from core.config import AppSettings
from core.domain.models import (
    Category,
    Ministry,
    PermissionModule,
    Person,
    Record,
    SiteParameters,
    Transaction,
    User,
)
from core.errors import (
    ComunidadError,
    FetchError,
    SessionNotReadyError,
    UserNotRegisteredError,
    user_message,
)
from core.interfaces.repository import CollectionSource
from core.services.token_manager import TokenManager

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    LOGGED_OUT = "logged_out"
    LOADING = "loading"
    READY = "ready"


@dataclass(frozen=True)
class SessionData:
    """Immutable view of every collection for the current session."""

    ministries: list[Ministry] = field(default_factory=list)
    people: list[Person] = field(default_factory=list)
    categories: list[Category] = field(default_factory=list)
    transactions: list[Transaction] = field(default_factory=list)
    users: list[User] = field(default_factory=list)
    site_params: SiteParameters | None = None

    @classmethod
    def empty(cls) -> "SessionData":
        return cls()


@dataclass
class SessionHooks:
    """Optional callbacks for UI layers (warnings, state changes)."""

    warning: Callable[[str], None] | None = None
    state_changed: Callable[[SessionState], None] | None = None


@dataclass
class SessionLoadResult:
    """Output of a session load."""

    data: SessionData
    outcomes: dict[str, FetchOutcome]
    warnings: list[str] = field(default_factory=list)
    discarded: bool = False

    @property
    def failed_collections(self) -> list[str]:
        return [name for name, outcome in self.outcomes.items() if not outcome.ok]

    @property
    def all_failed(self) -> bool:
        attempted = [o for o in self.outcomes.values() if o.source is not FetchSource.LOCAL]
        attempted = [o for o in attempted if not (o.source is FetchSource.DEFAULT and o.ok)]
        return bool(attempted) and all(not o.ok for o in attempted)


def _empty_value(collection: str) -> Any:
    return SiteParameters() if collection == "site_params" else []


class SessionLoader:
    """Drives login, the parallel session load, logout and mutations."""

    def __init__(
        self,
        settings: AppSettings,
        tokens: TokenManager,
        repositories: Repositories,
        *,
        hooks: SessionHooks | None = None,
    ) -> None:
        self._settings = settings
        self._tokens = tokens
        self._repos = repositories
        self._hooks = hooks or SessionHooks()

        self._state = SessionState.LOGGED_OUT
        self._data = SessionData.empty()
        self._user: User | None = None
        self._generation = 0

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def data(self) -> SessionData:
        return self._data

    @property
    def user(self) -> User | None:
        return self._user

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def repositories(self) -> Repositories:
        return self._repos

    def _set_state(self, state: SessionState) -> None:
        if state is self._state:
            return
        logger.debug("Session %s -> %s", self._state.value, state.value)
        self._state = state
        if self._hooks.state_changed:
            self._hooks.state_changed(state)

    def _warn(self, message: str, warnings: list[str]) -> None:
        warnings.append(message)
        if self._hooks.warning:
            self._hooks.warning(message)

    # ------------------------------------------------------------------
    # Login / logout
    # ------------------------------------------------------------------

    async def login(self, email: str, password: str) -> SessionLoadResult:
        """Authenticate, resolve the user record and load the session.

        Authentication failures propagate and leave the session logged out.
        """

        self._generation += 1
        generation = self._generation
        self._user = None
        self._data = SessionData.empty()
        self._set_state(SessionState.LOGGED_OUT)

        self._tokens.set_credentials(email, password)
        try:
            await self._tokens.get_token()
            if generation != self._generation:
                return self._superseded()
            user = await self._repos.users.find_by_email(email)
        except ComunidadError:
            # A newer login owns the credentials now.
            if generation == self._generation:
                self._tokens.clear_credentials()
            raise
        if generation != self._generation:
            return self._superseded()
        if user is None:
            self._tokens.clear_credentials()
            raise UserNotRegisteredError(email)

        self._user = user
        logger.info("Logged in as %s (%s)", user.email, user.role.value)
        return await self._load(generation)

    def logout(self) -> None:
        self._generation += 1
        self._user = None
        self._data = SessionData.empty()
        self._tokens.clear_token()
        self._tokens.clear_credentials()
        self._set_state(SessionState.LOGGED_OUT)
        logger.info("Logged out")

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _superseded(self) -> SessionLoadResult:
        logger.info("Discarding session load superseded by a newer login/logout")
        return SessionLoadResult(data=self._data, outcomes={}, discarded=True)

    async def _safe_fetch(self, source: CollectionSource) -> FetchOutcome:
        name = source.collection
        try:
            return await source.fetch_all()
        except Exception as exc:  # pragma: no cover
            logger.exception("Unexpected failure fetching %s", name)
            return FetchOutcome(name, _empty_value(name), FetchSource.DEFAULT, FetchError(name, str(exc)))

    async def load_session(self) -> SessionLoadResult:
        """Fetch every collection concurrently and publish them together."""

        if self._user is None:
            raise SessionNotReadyError()
        return await self._load(self._generation)

    async def _load(self, generation: int) -> SessionLoadResult:
        if generation != self._generation:
            return self._superseded()
        self._set_state(SessionState.LOADING)

        settled = await asyncio.gather(*(self._safe_fetch(source) for source in self._repos.sources()))
        outcomes = {outcome.collection: outcome for outcome in settled}

        if generation != self._generation:
            return self._superseded()

        values = {name: outcomes[name].value if name in outcomes else _empty_value(name) for name in COLLECTIONS}
        result = SessionLoadResult(data=SessionData(**values), outcomes=outcomes)

        language = self._settings.default_language
        for outcome in settled:
            if outcome.error is not None:
                logger.warning(
                    "Collection %s loaded from %s: %s",
                    outcome.collection,
                    outcome.source.value,
                    outcome.error,
                )
                self._warn(user_message(outcome.error, language), result.warnings)
        if result.all_failed:
            self._warn(
                language.pick(
                    es="No se pudo contactar el servidor; se muestran los datos guardados localmente.",
                    en="The server could not be reached; showing locally stored data.",
                ),
                result.warnings,
            )

        self._data = result.data
        self._set_state(SessionState.READY)
        return result

    # ------------------------------------------------------------------
    # Access + mutations
    # ------------------------------------------------------------------

    def has_access(self, module: PermissionModule) -> bool:
        return self._user is not None and self._user.has_access(module)

    def _require_ready(self) -> None:
        if self._state is not SessionState.READY or self._user is None:
            raise SessionNotReadyError()

    def _publish(self, generation: int, **changes: Any) -> None:
        if generation == self._generation:
            self._data = dataclasses.replace(self._data, **changes)

    async def create(self, collection: str, item: Record) -> Record:
        """Create through the repository; state changes only after success."""

        self._require_ready()
        generation = self._generation
        created = await self._repos.collection(collection).create(item)
        current = getattr(self._data, collection)
        self._publish(generation, **{collection: [*current, created]})
        return created

    async def update(self, collection: str, item: Record) -> Record:
        self._require_ready()
        generation = self._generation
        updated = await self._repos.collection(collection).update(item)
        current = getattr(self._data, collection)
        self._publish(generation, **{collection: [updated if x.id == item.id else x for x in current]})
        return updated

    async def remove(self, collection: str, item_id: str) -> None:
        self._require_ready()
        generation = self._generation
        await self._repos.collection(collection).delete(item_id)
        current = getattr(self._data, collection)
        self._publish(generation, **{collection: [x for x in current if x.id != item_id]})

    async def save_site_params(self, params: SiteParameters) -> SiteParameters:
        self._require_ready()
        generation = self._generation
        saved = await self._repos.site_params.save(params)
        self._publish(generation, site_params=saved)
        return saved
