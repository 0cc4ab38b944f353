"""
Module: bot/scheduler/transport.py

Defines ChannelTransport: sends a message to a Discord channel by ID with a
bounded timeout, classifying failures for the delivery retry policy.
"""
import asyncio
import nextcord
from config import SEND_TIMEOUT
from scheduler.errors import PermanentDeliveryError

class ChannelTransport:
    """
    Async callable `(subject, message)` backed by a nextcord bot.

    Missing channels and permission errors raise PermanentDeliveryError;
    timeouts and other HTTP errors propagate and are retried.
    """
    def __init__(self, bot, timeout=SEND_TIMEOUT):
        self.bot = bot
        self.timeout = timeout

    async def __call__(self, subject, message):
        channel = await self._resolve(subject)
        try:
            await asyncio.wait_for(channel.send(message), timeout=self.timeout.total_seconds())
        except (nextcord.NotFound, nextcord.Forbidden) as e:
            raise PermanentDeliveryError(f"Cannot send to channel {subject}: {e}") from e

    async def _resolve(self, subject):
        try:
            channel_id = int(subject)
        except (TypeError, ValueError) as e:
            raise PermanentDeliveryError(f"Invalid channel id {subject!r}") from e

        channel = self.bot.get_channel(channel_id)
        if channel is not None:
            return channel
        try:
            return await self.bot.fetch_channel(channel_id)
        except (nextcord.NotFound, nextcord.Forbidden) as e:
            raise PermanentDeliveryError(f"Channel {subject} is unavailable: {e}") from e
