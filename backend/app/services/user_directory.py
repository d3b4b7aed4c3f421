"""User directory — find or provision users by Telegram identity.

The bridge completer only needs one atomic operation:
find_or_create(identity) -> (user_id, created). New users receive
placeholder credentials that can never be used to sign in, plus a
generated public handle (``id`` + six digits).
"""

import logging
import secrets
import string
import uuid
from dataclasses import dataclass
from typing import NamedTuple, Protocol

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

_EMAIL_LOCAL_PART_LENGTH = 9
_EMAIL_DOMAIN = "local.local"
_USERNAME_PREFIX = "id"
_USERNAME_DIGITS = 6
_ALPHANUMERIC = string.ascii_letters + string.digits

# Placeholder values collide rarely; give up after this many tries
_MAX_CREATE_ATTEMPTS = 5

# "!" prefix marks a hash no password verifier will ever accept
_UNUSABLE_PASSWORD_PREFIX = "!"


@dataclass(frozen=True)
class TelegramIdentity:
    """Identity asserted by the bot for the approving Telegram account.

    Attributes:
        telegram_user_id: Numeric Telegram user id, stringified.
        full_name: Telegram display name.
        username: Telegram @handle without the @.
    """

    telegram_user_id: str
    full_name: str | None = None
    username: str | None = None


class UserResolution(NamedTuple):
    """Outcome of find_or_create: the user and whether it was just made."""

    user_id: uuid.UUID
    created: bool


@dataclass(frozen=True)
class UserProfile:
    """Public view of a user for /auth/me."""

    id: uuid.UUID
    username: str
    name: str | None
    telegram_username: str | None
    profile_type: str


class UserDirectory(Protocol):
    """Lookup/provisioning contract used by the bridge completer."""

    async def find_or_create(self, identity: TelegramIdentity) -> UserResolution: ...

    async def get_profile(self, user_id: uuid.UUID) -> UserProfile | None: ...


def generate_placeholder_email() -> str:
    """Random ``<9 alphanumerics>@local.local`` address, never mailed."""
    local = "".join(
        secrets.choice(_ALPHANUMERIC) for _ in range(_EMAIL_LOCAL_PART_LENGTH)
    )
    return f"{local}@{_EMAIL_DOMAIN}"


def generate_placeholder_password_hash() -> str:
    """Unguessable value stored in place of a password hash."""
    return f"{_UNUSABLE_PASSWORD_PREFIX}{secrets.token_hex(32)}"


def generate_username() -> str:
    """Public handle of the form ``id123456``."""
    digits = "".join(secrets.choice(string.digits) for _ in range(_USERNAME_DIGITS))
    return f"{_USERNAME_PREFIX}{digits}"


class DatabaseUserDirectory:
    """User directory backed by the users table."""

    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    async def find_or_create(self, identity: TelegramIdentity) -> UserResolution:
        """Find a user by Telegram id or create one.

        Raises:
            IntegrityError: If placeholder values keep colliding.
        """
        existing = await UserRepository.get_by_telegram_id(
            self._db, identity.telegram_user_id
        )
        if existing is not None:
            return UserResolution(user_id=existing.id, created=False)

        last_error: IntegrityError | None = None
        for _ in range(_MAX_CREATE_ATTEMPTS):
            try:
                async with self._db.begin_nested():
                    new_id = await UserRepository.create_for_telegram(
                        self._db,
                        telegram_id=identity.telegram_user_id,
                        email=generate_placeholder_email(),
                        password_hash=generate_placeholder_password_hash(),
                        username=generate_username(),
                        name=identity.full_name,
                        telegram_username=identity.username,
                    )
            except IntegrityError as exc:
                # email or username collision; draw new placeholders
                last_error = exc
                continue

            if new_id is not None:
                logger.info("Provisioned user %s for Telegram login", new_id)
                return UserResolution(user_id=new_id, created=True)

            # Lost the race to a concurrent first login for this identity
            winner = await UserRepository.get_by_telegram_id(
                self._db, identity.telegram_user_id
            )
            if winner is not None:
                return UserResolution(user_id=winner.id, created=False)

        msg = f"Could not provision user after {_MAX_CREATE_ATTEMPTS} attempts"
        raise RuntimeError(msg) from last_error

    async def get_profile(self, user_id: uuid.UUID) -> UserProfile | None:
        user = await UserRepository.get_by_id(self._db, user_id)
        if user is None:
            return None
        return UserProfile(
            id=user.id,
            username=user.username,
            name=user.name,
            telegram_username=user.telegram_username,
            profile_type=user.profile_type,
        )


@dataclass
class _StoredUser:
    profile: UserProfile
    telegram_id: str
    email: str
    password_hash: str


class InMemoryUserDirectory:
    """Dict-backed user directory for local mode and tests.

    find_or_create() does not await between lookup and insert, so it is
    atomic on the event loop.
    """

    def __init__(self) -> None:
        self._by_id: dict[uuid.UUID, _StoredUser] = {}
        self._by_telegram_id: dict[str, uuid.UUID] = {}
        self._usernames: set[str] = set()

    async def find_or_create(self, identity: TelegramIdentity) -> UserResolution:
        existing = self._by_telegram_id.get(identity.telegram_user_id)
        if existing is not None:
            return UserResolution(user_id=existing, created=False)

        username = generate_username()
        while username in self._usernames:
            username = generate_username()

        user_id = uuid.uuid4()
        self._by_id[user_id] = _StoredUser(
            profile=UserProfile(
                id=user_id,
                username=username,
                name=identity.full_name,
                telegram_username=identity.username,
                profile_type="user",
            ),
            telegram_id=identity.telegram_user_id,
            email=generate_placeholder_email(),
            password_hash=generate_placeholder_password_hash(),
        )
        self._by_telegram_id[identity.telegram_user_id] = user_id
        self._usernames.add(username)
        return UserResolution(user_id=user_id, created=True)

    async def get_profile(self, user_id: uuid.UUID) -> UserProfile | None:
        stored = self._by_id.get(user_id)
        return stored.profile if stored is not None else None

    def __len__(self) -> int:
        return len(self._by_id)

    def clear(self) -> None:
        """Clear all users (for testing)."""
        self._by_id.clear()
        self._by_telegram_id.clear()
        self._usernames.clear()
