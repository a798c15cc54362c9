from __future__ import annotations

import logging

from token_catalog.app.application.services.domain.update_holder_counts import (
    update_holder_counts,
)
from token_catalog.app.config import settings
from token_catalog.app.domain.ports.out import HolderCountsUpdater
from token_catalog.app.infrastructure.db.engine import create_app_async_engine
from token_catalog.app.infrastructure.factories.domain.tokens_importer_factory import (
    holder_counts_updater_factory,
)
from token_catalog.app.interface.tasks.jsonl import load_jsonl

logger = logging.getLogger(__name__)


async def holder_count_deltas_task(
    *,
    path: str,
    backend: str = "sqlalchemy",
) -> None:
    """
    Task: apply holder-count deltas ({"contract_address_hash", "delta"} per line).

    Tokens whose holder_count is not initialized yet are skipped.
    """
    deltas = load_jsonl(path)

    engine = create_app_async_engine()
    try:
        updater: HolderCountsUpdater = holder_counts_updater_factory(
            backend=backend,
            engine=engine,
        )

        counts = await update_holder_counts(
            updater=updater,
            deltas=deltas,
            options=settings.import_options(),
        )

        logger.info(
            "Applied holder count deltas from %s",
            path,
            extra={"deltas": len(deltas), "updated": len(counts)},
        )
    finally:
        await engine.dispose()
