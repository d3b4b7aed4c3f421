"""Delete expired login handshakes and magic links.

Standalone script, meant for cron. Expired rows are already rejected on
every read; this only reclaims space.

Usage:
    cd backend && python -m scripts.sweep_expired_handshakes
"""

import logging

from app.services.bridge_backend import AuthBridgeBackend
from app.services.handshake_cleanup import SweepResult, sweep_expired

logger = logging.getLogger(__name__)


async def run_sweep(backend: AuthBridgeBackend) -> SweepResult:
    """Run one sweep and log the counts.

    Args:
        backend: Bridge collaborators to sweep.

    Returns:
        SweepResult with deletion counts.
    """
    result = await sweep_expired(backend)
    logger.info(
        "Sweep complete: %d handshakes, %d magic links deleted",
        result.expired_handshakes,
        result.expired_credentials,
    )
    return result


async def main() -> None:
    """CLI entry point: sweep the configured database."""
    from app.core.database import engine, session_scope
    from app.services.bridge_backend import database_backend

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    async with session_scope() as session:
        await run_sweep(database_backend(session))

    await engine.dispose()


if __name__ == "__main__":
    import asyncio

    asyncio.run(main())
