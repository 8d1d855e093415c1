"""API key generation, lookup and revocation."""

import hashlib
import secrets
from datetime import UTC, datetime
from typing import NamedTuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from breath_flow_server.models.api_key import APIKey

# Key format: bfk_<40 hex chars>
KEY_PREFIX = "bfk_"
KEY_RANDOM_LENGTH = 40


class GeneratedKey(NamedTuple):
    """Result of generating a new API key."""

    raw_key: str  # Full key (only shown once)
    key_hash: str  # SHA-256 hash for storage
    key_prefix: str  # First 12 chars for identification


def hash_key(raw_key: str) -> str:
    """Hash an API key for storage and lookup."""
    return hashlib.sha256(raw_key.encode()).hexdigest()


def generate_api_key() -> GeneratedKey:
    """Generate a new API key.

    Example:
        >>> key = generate_api_key()
        >>> key.raw_key
        'bfk_a1b2c3d4e5f6g7h8i9j0k1l2m3n4o5p6q7r8s9t0'
        >>> key.key_prefix
        'bfk_a1b2c3d4'
    """
    raw_key = f"{KEY_PREFIX}{secrets.token_hex(KEY_RANDOM_LENGTH // 2)}"
    return GeneratedKey(raw_key=raw_key, key_hash=hash_key(raw_key), key_prefix=raw_key[:12])


async def issue_api_key(user_id: str, name: str, session: AsyncSession) -> tuple[APIKey, str]:
    """Issue a key for a user.

    Caller must commit the session.

    Returns:
        Tuple of (APIKey record, raw_key). The raw key is not stored.
    """
    generated = generate_api_key()
    api_key = APIKey(
        key_hash=generated.key_hash,
        key_prefix=generated.key_prefix,
        name=name,
        user_id=user_id,
        is_active=True,
    )
    session.add(api_key)
    await session.flush()  # Get the ID
    return api_key, generated.raw_key


async def validate_api_key(raw_key: str, session: AsyncSession) -> APIKey | None:
    """Return the active key record for a raw key, or None.

    Touches ``last_used_at``; caller must commit.
    """
    result = await session.execute(select(APIKey).where(APIKey.key_hash == hash_key(raw_key)))
    api_key = result.scalar_one_or_none()
    if api_key is None or not api_key.is_active:
        return None

    api_key.last_used_at = datetime.now(UTC)
    return api_key


async def revoke_api_key(raw_key: str, session: AsyncSession) -> bool:
    """Deactivate a key. Returns False if it did not exist or was already revoked."""
    result = await session.execute(select(APIKey).where(APIKey.key_hash == hash_key(raw_key)))
    api_key = result.scalar_one_or_none()
    if api_key is None or not api_key.is_active:
        return False

    api_key.is_active = False
    await session.flush()
    return True


async def revoke_user_keys(user_id: str, session: AsyncSession) -> int:
    """Deactivate every active key of a user. Caller must commit.

    Returns:
        Number of keys revoked
    """
    result = await session.execute(
        select(APIKey).where(APIKey.user_id == user_id, APIKey.is_active.is_(True))
    )
    keys = list(result.scalars().all())
    for api_key in keys:
        api_key.is_active = False
    await session.flush()
    return len(keys)
