"""Клиент Афиши Казахстана: слой данных и Telegram-бот."""

__version__ = "0.1.0"
