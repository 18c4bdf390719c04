"""
Session state and the navigation gate.

``SessionStore`` is the single owner of the current ``Session``; every change
goes through one of its transition methods. ``decide`` is a pure function of
(path, session) so the gating rules can be tested without Flask, and
``SessionGate`` is the small executor that performs the profile fetch the
decision asks for.

Tickets guard against changes within one store. Logouts made by other
requests reach the store through a shared revocation set, checked before a
fetch starts and again when its result arrives.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from api_client import ApiError
from models import ApiUser

logger = logging.getLogger(__name__)

PUBLIC_ROUTES = frozenset({'/login', '/register'})
HOME_ROUTE = '/'
LOGIN_ROUTE = '/login'

LOADING = 'loading'
REDIRECT = 'redirect'
RENDER = 'render'


@dataclass(frozen=True)
class Decision:
    kind: str
    target: Optional[str] = None


SHOW_LOADING = Decision(LOADING)
RENDER_CHILDREN = Decision(RENDER)


def redirect_to(target):
    return Decision(REDIRECT, target)


@dataclass
class Session:
    token: Optional[str] = None
    user: Optional[ApiUser] = None
    is_authenticated: bool = False
    is_loading: bool = False


@dataclass(frozen=True)
class FetchTicket:
    """Identifies one profile fetch; stale tickets are ignored."""
    token: str
    generation: int


class MemoryTokenStorage:
    """Token storage kept in process memory."""

    def __init__(self, token=None):
        self.token = token

    def load(self):
        return self.token

    def save(self, token):
        self.token = token

    def clear(self):
        self.token = None


class MemoryRevocations:
    """Tokens ended by a logout, kept in process memory."""

    def __init__(self):
        self.tokens = set()

    def is_revoked(self, token):
        return token in self.tokens

    def revoke(self, token):
        self.tokens.add(token)

    def restore(self, token):
        self.tokens.discard(token)


class SessionStore:
    def __init__(self, storage, revocations=None):
        self._storage = storage
        self._revocations = revocations if revocations is not None else MemoryRevocations()
        self._generation = 0
        self.last_failure = None
        token = storage.load() or None
        # A persisted token means the profile still has to be confirmed
        self.session = Session(token=token, is_loading=token is not None)

    @property
    def generation(self):
        return self._generation

    def _reset(self):
        self._generation += 1
        self._storage.clear()
        self.session = Session()

    def _is_current(self, ticket):
        return ticket.generation == self._generation and ticket.token == self.session.token

    def _revoked(self, reason):
        logger.info("Token was revoked by a logout (%s)", reason)
        self.last_failure = ApiError('Session has been revoked.', status_code=401)
        self._reset()

    def begin_profile_fetch(self):
        """Return a ticket for a profile fetch, or None when there is no token.

        A token that was logged out elsewhere is dropped without a fetch.
        """
        if not self.session.token:
            self.session.is_loading = False
            return None
        if self._revocations.is_revoked(self.session.token):
            self._revoked('before fetch')
            return None
        self.session.is_loading = True
        return FetchTicket(self.session.token, self._generation)

    def profile_loaded(self, ticket, user):
        if not self._is_current(ticket):
            logger.debug("Discarding stale profile result (generation %s)", ticket.generation)
            return False
        # Logout in another request while the fetch was in flight
        if self._revocations.is_revoked(ticket.token):
            self._revoked('during fetch')
            return False
        self.session.user = user
        self.session.is_authenticated = True
        self.session.is_loading = False
        self.last_failure = None
        return True

    def profile_failed(self, ticket, error=None):
        if not self._is_current(ticket):
            logger.debug("Discarding stale profile failure (generation %s)", ticket.generation)
            return False
        self.last_failure = error
        self._reset()
        return True

    def login(self, token, user):
        self._generation += 1
        self._revocations.restore(token)
        self._storage.save(token)
        self.last_failure = None
        self.session = Session(token=token, user=user, is_authenticated=True, is_loading=False)

    def profile_updated(self, user):
        if not self.session.is_authenticated:
            return False
        self.session.user = user
        return True

    def logout(self):
        if self.session.token:
            self._revocations.revoke(self.session.token)
        self._reset()


def normalize_path(path):
    if not path:
        return HOME_ROUTE
    if len(path) > 1:
        path = path.rstrip('/') or HOME_ROUTE
    return path


def is_public(path, public_routes=PUBLIC_ROUTES):
    return normalize_path(path) in public_routes


def decide(path, session, public_routes=PUBLIC_ROUTES):
    if session.is_loading and session.token:
        return SHOW_LOADING

    public = is_public(path, public_routes)
    if not session.is_authenticated and not public:
        return redirect_to(LOGIN_ROUTE)
    if session.is_authenticated and public:
        return redirect_to(HOME_ROUTE)
    return RENDER_CHILDREN


class SessionGate:
    """Resolves a request path to a final decision, fetching the profile if needed."""

    def __init__(self, store, fetch_profile, public_routes=PUBLIC_ROUTES):
        self.store = store
        self.fetch_profile = fetch_profile
        self.public_routes = public_routes

    def settle(self):
        ticket = self.store.begin_profile_fetch()
        if ticket is None:
            return
        try:
            payload = self.fetch_profile(ticket.token)
            user = ApiUser.from_payload(payload)
        except ApiError as e:
            if e.is_auth_error:
                logger.warning("Profile fetch rejected (%s); clearing token", e.status_code)
            else:
                logger.error("Profile fetch failed: %s; clearing token", e.message)
            self.store.profile_failed(ticket, e)
            return
        self.store.profile_loaded(ticket, user)

    def evaluate(self, path):
        """Decide for ``path``. The fetch runs inline, so the result is never SHOW_LOADING
        unless the fetched profile was discarded as stale."""
        decision = decide(path, self.store.session, self.public_routes)
        if decision == SHOW_LOADING:
            self.settle()
            decision = decide(path, self.store.session, self.public_routes)
        return decision
