"""
Server-side key-agreement sessions.

A session binds the ``session-id`` header a client chooses to the
server's ephemeral key-agreement party.  The public-key endpoint creates
it; the transport middleware completes it when an envelope arrives with
the client's public value.

Sessions are memory-resident and per process.  The store is resolved from
``SECURE_CHANNEL['SESSION_STORE']`` so deployments and tests can swap it.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Union

from django.utils.module_loading import import_string

from securelink.conf import DEFAULT_SESSION_ID, secure_setting
from securelink.services.keyagreement import DHParameters, KeyAgreementParty

logger = logging.getLogger(__name__)


@dataclass
class Session:
    session_id: str
    server_party: KeyAgreementParty
    shared_secret: Optional[int] = field(default=None, repr=False)
    created_at: float = 0.0
    last_seen: float = 0.0
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def public_key(self) -> str:
        return self.server_party.public_key()


class SessionStore:
    """Interface every session store implements."""

    def get_or_create(self, session_id: str) -> Session:
        raise NotImplementedError

    def public_value_for(self, session_id: str) -> str:
        return self.get_or_create(session_id).public_key()

    def establish(self, session_id: str, client_public_value: Union[int, str]) -> int:
        """Derive and record the shared secret for a client public value.

        Returns the secret derived for this caller, which is what the caller
        must use even if another request updates the session afterwards.
        """
        raise NotImplementedError

    def evict(self, session_id: str) -> bool:
        raise NotImplementedError

    def purge_expired(self) -> int:
        return 0

    def close(self) -> None:
        raise NotImplementedError

    def __len__(self) -> int:
        raise NotImplementedError


class InMemorySessionStore(SessionStore):
    def __init__(self, ttl: Optional[float] = None, params: Optional[DHParameters] = None,
                 clock: Callable[[], float] = time.monotonic):
        if ttl is None:
            ttl = secure_setting('SESSION_TTL')
        self.ttl = ttl if ttl and ttl > 0 else None
        self.params = params or DHParameters.from_settings()
        self._clock = clock
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def _expired(self, session: Session, now: float) -> bool:
        return self.ttl is not None and now - session.last_seen > self.ttl

    def _sweep(self, now: float) -> int:
        # caller holds self._lock
        stale = [sid for sid, s in self._sessions.items() if self._expired(s, now)]
        for sid in stale:
            del self._sessions[sid]
        self._last_sweep = now
        return len(stale)

    def get_or_create(self, session_id: str) -> Session:
        session_id = session_id or DEFAULT_SESSION_ID
        now = self._clock()
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None and self._expired(session, now):
                logger.info('Secure session %s expired after %ss idle', session_id, self.ttl)
                del self._sessions[session_id]
                session = None
            if session is None:
                # new ids come from unauthenticated callers; bound the map at creation time
                if self.ttl is not None and now - self._last_sweep >= self.ttl / 2:
                    swept = self._sweep(now)
                    if swept:
                        logger.info('Swept %d expired secure sessions', swept)
                session = Session(
                    session_id=session_id,
                    server_party=KeyAgreementParty.generate(self.params),
                    created_at=now,
                    last_seen=now,
                )
                self._sessions[session_id] = session
                logger.debug('Created secure session %s (server public key %s)', session_id, session.public_key())
            else:
                session.last_seen = now
            return session

    def establish(self, session_id: str, client_public_value: Union[int, str]) -> int:
        session = self.get_or_create(session_id)
        with session.lock:
            secret = session.server_party.derive_shared_secret(client_public_value)
            session.shared_secret = secret
            session.last_seen = self._clock()
        return secret

    def evict(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.pop(session_id, None) is not None

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            purged = self._sweep(now)
        if purged:
            logger.info('Purged %d expired secure sessions', purged)
        return purged

    def close(self) -> None:
        with self._lock:
            count = len(self._sessions)
            self._sessions.clear()
        if count:
            logger.info('Closed session store, dropped %d sessions', count)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


_store: Optional[SessionStore] = None
_store_lock = threading.Lock()


def get_session_store() -> SessionStore:
    global _store
    if _store is None:
        with _store_lock:
            if _store is None:
                store_cls = import_string(secure_setting('SESSION_STORE'))
                _store = store_cls()
    return _store


def reset_session_store() -> None:
    """Tear down the process store; the next access builds a fresh one."""
    global _store
    with _store_lock:
        store, _store = _store, None
    if store is not None:
        store.close()
