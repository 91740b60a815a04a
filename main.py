"""Telegram-бот Афиши Казахстана. Railway: BOT_TOKEN, API_URL, REDIS_URL."""
import asyncio
import logging

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.fsm.storage.memory import MemoryStorage
from aiogram.fsm.storage.redis import RedisStorage

from afisha.config import Config
from afisha.handlers import setup_routers
from afisha.middleware import ClientMiddleware
from afisha.services.client import ClientRegistry
from afisha.storage import close_redis, get_redis
from afisha.views import ScreenManager

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


async def main() -> None:
    config = Config.from_env()
    logger.info("Config: %s", config.masked_summary())
    logger.info("Cache settings fingerprint: %s", config.fingerprint())

    bot = Bot(
        token=config.BOT_TOKEN,
        default=DefaultBotProperties(parse_mode=ParseMode.HTML),
    )

    # FSM (фильтры, шаги форм) живёт там же, где сессии
    if config.REDIS_URL:
        fsm_storage = RedisStorage(await get_redis(config.REDIS_URL))
    else:
        fsm_storage = MemoryStorage()
    dp = Dispatcher(storage=fsm_storage)

    registry = ClientRegistry(config)
    screens = ScreenManager()

    # Middleware
    dp.update.middleware(ClientMiddleware(registry, screens, config))

    # Routers
    dp.include_router(setup_routers())

    # Clean webhook (если вдруг был)
    await bot.delete_webhook(drop_pending_updates=True)

    try:
        logger.info("Bot started, API %s", config.API_URL)
        await dp.start_polling(bot)
    finally:
        screens.close_all()
        await registry.close()
        await close_redis()
        await bot.session.close()
        logger.info("Shutdown complete")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Bot stopped")
