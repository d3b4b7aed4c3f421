"""Tests for Telegram user provisioning helpers and the in-memory directory."""

import re
import uuid

from app.services.user_directory import (
    InMemoryUserDirectory,
    TelegramIdentity,
    generate_placeholder_email,
    generate_placeholder_password_hash,
    generate_username,
)


class TestPlaceholderValues:
    """Values given to users created by the bridge."""

    def test_email_is_nine_alphanumerics_at_local_domain(self):
        assert re.fullmatch(r"[A-Za-z0-9]{9}@local\.local", generate_placeholder_email())

    def test_password_hash_is_unusable_and_random(self):
        first = generate_placeholder_password_hash()
        second = generate_placeholder_password_hash()
        assert first.startswith("!")
        assert first != second

    def test_username_is_id_plus_six_digits(self):
        assert re.fullmatch(r"id\d{6}", generate_username())


class TestInMemoryUserDirectory:
    async def test_creates_user_once_per_identity(self):
        users = InMemoryUserDirectory()
        identity = TelegramIdentity(telegram_user_id="100", full_name="Oleg")

        first = await users.find_or_create(identity)
        second = await users.find_or_create(identity)

        assert first.created is True
        assert second.created is False
        assert second.user_id == first.user_id
        assert len(users) == 1

    async def test_different_identities_get_different_users(self):
        users = InMemoryUserDirectory()

        a = await users.find_or_create(TelegramIdentity(telegram_user_id="1"))
        b = await users.find_or_create(TelegramIdentity(telegram_user_id="2"))

        assert a.user_id != b.user_id
        profile_a = await users.get_profile(a.user_id)
        profile_b = await users.get_profile(b.user_id)
        assert profile_a.username != profile_b.username

    async def test_profile_carries_identity_details(self):
        users = InMemoryUserDirectory()
        resolution = await users.find_or_create(
            TelegramIdentity(telegram_user_id="5", full_name="Maria", username="maria_k")
        )

        profile = await users.get_profile(resolution.user_id)

        assert profile.name == "Maria"
        assert profile.telegram_username == "maria_k"
        assert profile.profile_type == "user"
        assert re.fullmatch(r"id\d{6}", profile.username)

    async def test_unknown_user_has_no_profile(self):
        assert await InMemoryUserDirectory().get_profile(uuid.uuid4()) is None
