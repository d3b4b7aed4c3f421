"""Repository for VerificationToken operations.

Single-use magic link tokens stored as hashed values with
time-limited expiry.
"""

from datetime import datetime

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.verification_token import VerificationToken


class VerificationTokenRepository:
    """Stateless repository for VerificationToken table operations.

    All methods are static — no instance state.
    """

    @staticmethod
    async def create(
        db: AsyncSession,
        *,
        identifier: str,
        token_hash: str,
        expires: datetime,
        redirect_to: str,
    ) -> VerificationToken:
        """Store a new verification token.

        Args:
            db: Async database session.
            identifier: User id the link signs in.
            token_hash: SHA-256 hash of the plain token.
            expires: Token expiry timestamp.
            redirect_to: Post-redemption destination.

        Returns:
            Created VerificationToken.
        """
        vt = VerificationToken(
            identifier=identifier,
            token=token_hash,
            expires=expires,
            redirect_to=redirect_to,
        )
        db.add(vt)
        await db.flush()
        return vt

    @staticmethod
    async def pop(db: AsyncSession, *, token_hash: str) -> VerificationToken | None:
        """Delete a token and return it (single use).

        DELETE ... RETURNING makes lookup and consumption one statement,
        so two concurrent redemptions cannot both succeed.

        Args:
            db: Async database session.
            token_hash: SHA-256 hash of the plain token.

        Returns:
            The deleted VerificationToken, or None if it did not exist.
        """
        stmt = (
            delete(VerificationToken)
            .where(VerificationToken.token == token_hash)
            .returning(VerificationToken)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def delete_expired(db: AsyncSession, *, now: datetime) -> int:
        """Delete all expired tokens (periodic cleanup).

        Returns:
            Number of deleted rows.
        """
        stmt = delete(VerificationToken).where(VerificationToken.expires < now)
        result = await db.execute(stmt)
        row_count: int = result.rowcount  # type: ignore[attr-defined]
        return row_count
