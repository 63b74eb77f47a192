from __future__ import annotations

import logging
from typing import Callable, Optional

from auth import AuthEvent, AuthProvider, Subscription
from domain import AuthSession, SessionState, SessionStatus

LOGGER = logging.getLogger(__name__)

StateListener = Callable[[SessionState], None]


class SessionProvider:
    """Owns the session state of one client.

    Starts as UNKNOWN; ``initialize()`` resolves it to AUTHENTICATED or
    ANONYMOUS and starts following the auth provider. ``close()`` stops
    following it.
    """

    def __init__(self, auth: AuthProvider):
        self.auth = auth
        self.state = SessionState()
        self._listeners: list[StateListener] = []
        self._subscription: Subscription | None = None

    @property
    def resolved(self) -> bool:
        return self.state.status is not SessionStatus.UNKNOWN

    def initialize(self) -> SessionState:
        if self._subscription is None:
            self._subscription = self.auth.on_auth_state_change(self._on_auth_change)
        self._set(SessionState.from_session(self.auth.get_session()))
        return self.state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Registers ``listener``; call the returned function to stop receiving updates."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _on_auth_change(self, event: AuthEvent, session: Optional[AuthSession]) -> None:
        LOGGER.debug("auth event %s", event.value)
        self._set(SessionState.from_session(session))

    def _set(self, state: SessionState) -> None:
        self.state = state
        for listener in list(self._listeners):
            listener(state)

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        self._listeners.clear()
