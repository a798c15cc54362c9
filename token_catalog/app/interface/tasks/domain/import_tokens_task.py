from __future__ import annotations

import logging

from token_catalog.app.application.services.domain.import_tokens import import_tokens
from token_catalog.app.config import settings
from token_catalog.app.domain.ports.out import TokensUpserter
from token_catalog.app.infrastructure.db.engine import create_app_async_engine
from token_catalog.app.infrastructure.factories.domain.tokens_importer_factory import (
    tokens_upserter_factory,
)
from token_catalog.app.interface.tasks.jsonl import load_jsonl

logger = logging.getLogger(__name__)


async def import_tokens_task(
    *,
    path: str,
    backend: str = "sqlalchemy",
) -> None:
    """
    Task: import candidate tokens from a JSON-lines file into the catalog.

    - drops candidates that would not change an existing token,
    - inserts new tokens / merges metadata into existing ones,
    - leaves holder_count of existing tokens untouched.
    """
    changes_list = load_jsonl(path)

    engine = create_app_async_engine()
    try:
        upserter: TokensUpserter = tokens_upserter_factory(
            backend=backend,
            engine=engine,
        )

        tokens = await import_tokens(
            upserter=upserter,
            changes_list=changes_list,
            options=settings.import_options(),
        )

        logger.info(
            "Imported tokens from %s",
            path,
            extra={"candidates": len(changes_list), "written": len(tokens)},
        )
    finally:
        await engine.dispose()
