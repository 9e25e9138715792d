"""Service wiring: restore triggers, then run the engine and the bot side by side."""

from __future__ import annotations

import asyncio
import logging

from price_sentinel.bot import UpdateDispatcher, UpdatePoller
from price_sentinel.commands import CommandService
from price_sentinel.core.config import SentinelConfig
from price_sentinel.notify import TelegramClient, TelegramNotifier
from price_sentinel.prices import PriceCache, PriceSource, create_price_source
from price_sentinel.triggers import MatchingEngine, TriggerBackup, TriggerStore

logger = logging.getLogger(__name__)


class PriceSentinelService:
    """Owns every long-lived component and the two background loops.

    The trigger store and the price cache are created once here and handed
    to both the matching engine and the command surface.
    """

    def __init__(
        self,
        config: SentinelConfig,
        store: TriggerStore,
        source: PriceSource,
        cache: PriceCache,
        client: TelegramClient,
        engine: MatchingEngine,
        commands: CommandService,
        poller: UpdatePoller | None,
    ) -> None:
        self.config = config
        self.store = store
        self.source = source
        self.cache = cache
        self.client = client
        self.engine = engine
        self.commands = commands
        self.poller = poller

    @classmethod
    def from_config(cls, config: SentinelConfig) -> PriceSentinelService:
        """Build the service. The trigger store is restored before anything runs.

        Raises:
            ConfigError: no bot token and not in dry-run mode.
        """
        config.require_bot_token()
        asset_name = config.price_source.asset_name

        store = TriggerStore.restore(TriggerBackup(config.storage.backup_path))
        source = create_price_source(config.price_source)
        cache = PriceCache(
            source,
            freshness_seconds=config.cache.freshness_seconds,
            max_attempts=config.cache.max_attempts,
            retry_delay=config.cache.retry_delay,
        )
        client = TelegramClient.from_config(config.telegram)
        engine = MatchingEngine(
            store,
            cache,
            TelegramNotifier(client),
            asset_name=asset_name,
            tick_interval=config.engine.tick_interval,
        )
        commands = CommandService(store, cache, asset_name=asset_name)

        poller = None
        if not config.telegram.dry_run:
            poller = UpdatePoller(
                client,
                UpdateDispatcher(client, commands),
                poll_timeout=config.telegram.poll_timeout,
            )

        return cls(config, store, source, cache, client, engine, commands, poller)

    async def run(self) -> None:
        """Run until ``stop()``; always releases HTTP clients on exit."""
        logger.info(
            "Watching %s: %d triggers for %d chats",
            self.config.price_source.asset_name,
            self.store.condition_count(),
            len(self.store),
        )
        loops = [self.engine.run()]
        if self.poller is not None:
            loops.append(self.poller.run())
        try:
            await asyncio.gather(*loops)
        finally:
            await self.aclose()

    def stop(self) -> None:
        self.engine.stop()
        if self.poller is not None:
            self.poller.stop()

    async def aclose(self) -> None:
        await self.client.close()
        await self.source.aclose()
