from __future__ import annotations

from typing import Callable, Dict

from sqlalchemy.ext.asyncio import AsyncEngine

from token_catalog.app.config import Settings, settings
from token_catalog.app.domain.merge_policy import MergePolicy
from token_catalog.app.domain.ports.out import HolderCountsUpdater, TokensUpserter
from token_catalog.app.infrastructure.adapters.domain.holder_counts_updater import (
    SqlAlchemyHolderCountsUpdater,
)
from token_catalog.app.infrastructure.adapters.domain.tokens_upserter import (
    SqlAlchemyTokensUpserter,
)

TokensUpserterFactory = Callable[[AsyncEngine, Settings], TokensUpserter]
HolderCountsUpdaterFactory = Callable[[AsyncEngine, Settings], HolderCountsUpdater]

_TOKENS_UPSERTER_REGISTRY: Dict[str, TokensUpserterFactory] = {}
_HOLDER_COUNTS_UPDATER_REGISTRY: Dict[str, HolderCountsUpdaterFactory] = {}


def _make_sqlalchemy_upserter(engine: AsyncEngine, app_settings: Settings) -> TokensUpserter:
    """
    Wire the SQLAlchemy upserter:
    - merge policy from the configured field set (bridged toggle),
    - statement batch size from settings.
    """
    return SqlAlchemyTokensUpserter(
        engine=engine,
        merge_policy=MergePolicy.from_config(app_settings.merge_config()),
        batch_size=app_settings.tokens_import_batch_size,
    )


def _make_sqlalchemy_updater(engine: AsyncEngine, app_settings: Settings) -> HolderCountsUpdater:
    return SqlAlchemyHolderCountsUpdater(
        engine=engine,
        batch_size=app_settings.tokens_import_batch_size,
    )


# Register backends
_TOKENS_UPSERTER_REGISTRY["sqlalchemy"] = _make_sqlalchemy_upserter
_HOLDER_COUNTS_UPDATER_REGISTRY["sqlalchemy"] = _make_sqlalchemy_updater


def tokens_upserter_factory(
    *,
    backend: str,
    engine: AsyncEngine,
    app_settings: Settings | None = None,
) -> TokensUpserter:
    """Create a token metadata upserter for the given backend."""
    try:
        factory = _TOKENS_UPSERTER_REGISTRY[backend]
    except KeyError:
        raise ValueError(f"Unsupported tokens upserter backend: {backend!r}")

    return factory(engine, app_settings or settings)


def holder_counts_updater_factory(
    *,
    backend: str,
    engine: AsyncEngine,
    app_settings: Settings | None = None,
) -> HolderCountsUpdater:
    """Create a holder-count delta updater for the given backend."""
    try:
        factory = _HOLDER_COUNTS_UPDATER_REGISTRY[backend]
    except KeyError:
        raise ValueError(f"Unsupported holder counts updater backend: {backend!r}")

    return factory(engine, app_settings or settings)
