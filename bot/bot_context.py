"""
Module: bot/bot_context.py

Sets up the Discord bot, database, timer store, delivery and scheduler, and
defines the fixed-interval poll loop and the configured event extractors.
"""
import nextcord
from nextcord.ext import commands, tasks

from database import Database
from scheduler import ChannelTransport, DeliveryManager, TimerScheduler, TimerStore
from config import DATABASE_PATH, EVENT_EXTRACTORS, POLL_INTERVAL
from utils import log_message, load_callable

# Initialize database connection and scheduler
db = Database(DATABASE_PATH)
intents = nextcord.Intents.default()
intents.message_content = True
intents.dm_messages = True
bot = commands.Bot(intents=intents)

store = TimerStore(db)
transport = ChannelTransport(bot)
delivery = DeliveryManager(store, transport)
scheduler = TimerScheduler(store, delivery, transport)

event_extractors = []
for path in EVENT_EXTRACTORS:
    try:
        event_extractors.append(load_callable(path))
        log_message(f"Loaded event extractor {path}", "info")
    except Exception as e:
        log_message(f"Failed to load event extractor {path}: {e}", "error")

@tasks.loop(seconds=POLL_INTERVAL.total_seconds())
async def poll_timers():
    # An escaping exception would stop the loop for good
    try:
        await scheduler.tick()
    except Exception as e:
        log_message(f"Timer poll failed: {e}", "error")
