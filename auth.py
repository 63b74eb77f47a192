"""Password-based auth provider backed by the ``accounts`` table.

Exposes the surface the UI needs from an auth service: sign-up, sign-in,
sign-out, the current session, token refresh, and change notifications.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import logging
import re
import secrets
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, select

from domain import Account, AuthSession
from errors import AuthError
from repository import AccountDB

LOGGER = logging.getLogger(__name__)

PBKDF2_DEFAULT_ITERATIONS = 390_000
MIN_PASSWORD_LENGTH = 6
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class AuthEvent(str, Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"


AuthListener = Callable[[AuthEvent, Optional[AuthSession]], None]


def generate_password_hash(password: str, *, iterations: int = PBKDF2_DEFAULT_ITERATIONS) -> str:
    """Return a PBKDF2-based password hash string."""

    if not password:
        raise ValueError("password must not be empty")
    salt = secrets.token_bytes(16)
    derived = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    components = (
        str(iterations),
        base64.urlsafe_b64encode(salt).decode("ascii"),
        base64.urlsafe_b64encode(derived).decode("ascii"),
    )
    return "$".join(components)


def verify_password(password: str, stored_hash: str) -> bool:
    """Verify a password against a stored PBKDF2 hash."""

    try:
        iterations_str, salt_b64, hash_b64 = stored_hash.split("$")
        iterations = int(iterations_str)
        salt = base64.urlsafe_b64decode(salt_b64)
        digest = base64.urlsafe_b64decode(hash_b64)
    except (ValueError, binascii.Error):
        LOGGER.error("stored password hash is malformed")
        return False
    candidate = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations)
    return hmac.compare_digest(candidate, digest)


class Subscription:
    """Handle returned by ``on_auth_state_change``."""

    def __init__(self, provider: "AuthProvider", listener: AuthListener):
        self._provider = provider
        self.listener = listener
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._provider._listeners.remove(self)
            self.active = False


class AuthProvider:
    """Keeps one client's session; listeners hear about every transition."""

    def __init__(
        self,
        engine,
        *,
        session_ttl: timedelta = timedelta(days=7),
        iterations: int = PBKDF2_DEFAULT_ITERATIONS,
        clock: Callable[[], datetime] | None = None,
        auto_refresh: bool = True,
        refresh_margin: timedelta | None = None,
    ):
        self.engine = engine
        self.session_ttl = session_ttl
        self.iterations = iterations
        self.auto_refresh = auto_refresh
        self.refresh_margin = refresh_margin if refresh_margin is not None else session_ttl / 4
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._session: AuthSession | None = None
        self._listeners: list[Subscription] = []

    # --- notifications -------------------------------------------------

    def on_auth_state_change(self, listener: AuthListener) -> Subscription:
        sub = Subscription(self, listener)
        self._listeners.append(sub)
        return sub

    def _emit(self, event: AuthEvent) -> None:
        for sub in list(self._listeners):
            sub.listener(event, self._session)

    # --- account management --------------------------------------------

    @staticmethod
    def _normalize_email(email: str) -> str:
        email = (email or "").strip().lower()
        if not _EMAIL_RE.match(email):
            raise AuthError("Correo electrónico no válido.")
        return email

    def sign_up(self, email: str, password: str) -> Account:
        """Creates an account. The user still has to sign in afterwards."""
        email = self._normalize_email(email)
        if len(password or "") < MIN_PASSWORD_LENGTH:
            raise AuthError(f"La contraseña debe tener al menos {MIN_PASSWORD_LENGTH} caracteres.")
        row = AccountDB(email=email, password_hash=generate_password_hash(password, iterations=self.iterations))
        try:
            with Session(self.engine) as s:
                s.add(row)
                s.commit()
                s.refresh(row)
                account = Account(id=row.id, email=row.email, created_at=row.created_at)
        except IntegrityError as e:
            raise AuthError("Ya existe una cuenta con ese correo.") from e
        except SQLAlchemyError as e:
            LOGGER.error("sign-up failed: %s", e)
            raise AuthError(f"No se pudo crear la cuenta: {e}") from e
        LOGGER.info("account created: %s", account.id)
        return account

    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        email = self._normalize_email(email)
        try:
            with Session(self.engine) as s:
                row = s.exec(select(AccountDB).where(AccountDB.email == email)).first()
                account = Account(id=row.id, email=row.email, created_at=row.created_at) if row else None
                stored_hash = row.password_hash if row else None
        except SQLAlchemyError as e:
            LOGGER.error("sign-in lookup failed: %s", e)
            raise AuthError(f"No se pudo iniciar sesión: {e}") from e

        if account is None or not verify_password(password or "", stored_hash):
            LOGGER.warning("invalid credentials for %s", email)
            raise AuthError("Credenciales de acceso no válidas.")

        self._session = self._new_session(account)
        LOGGER.info("signed in: %s", account.id)
        self._emit(AuthEvent.SIGNED_IN)
        return self._session

    def sign_out(self) -> None:
        if self._session is None:
            return
        LOGGER.info("signed out: %s", self._session.account.id)
        self._session = None
        self._emit(AuthEvent.SIGNED_OUT)

    # --- session -------------------------------------------------------

    def _new_session(self, account: Account) -> AuthSession:
        return AuthSession(
            account=account,
            access_token=secrets.token_urlsafe(32),
            expires_at=self._clock() + self.session_ttl,
        )

    def _current(self) -> AuthSession | None:
        if self._session is not None and self._session.is_expired(self._clock()):
            LOGGER.info("session expired for %s", self._session.account.id)
            self._session = None
            self._emit(AuthEvent.SIGNED_OUT)
        return self._session

    def get_session(self) -> AuthSession | None:
        """Current session, or ``None`` when signed out or expired.

        With ``auto_refresh`` on, a session within ``refresh_margin`` of its
        expiry is renewed here and listeners get ``TOKEN_REFRESHED``.
        """
        session = self._current()
        if session is not None and self.auto_refresh:
            if session.expires_at - self._clock() <= self.refresh_margin:
                LOGGER.info("auto-refreshing session for %s", session.account.id)
                return self._refresh(session)
        return session

    def _refresh(self, session: AuthSession) -> AuthSession:
        self._session = self._new_session(session.account)
        self._emit(AuthEvent.TOKEN_REFRESHED)
        return self._session

    def refresh_session(self) -> AuthSession:
        session = self._current()
        if session is None:
            raise AuthError("No hay sesión activa.")
        return self._refresh(session)
