import os
from dotenv import load_dotenv
from datetime import timedelta
from utils import parse_interval, interval_to_timedelta

load_dotenv()


def _interval(name, default, fallback):
    return interval_to_timedelta(*parse_interval(os.getenv(name, default))) or fallback


DISCORD_BOT_TOKEN = os.getenv('DISCORD_BOT_TOKEN')
DISCORD_APPLICATION_ID = os.getenv('DISCORD_APPLICATION_ID')

DATABASE_PATH = os.getenv('DATABASE_PATH', 'timers.db')

# Scheduler cadence and delivery policy; read once at startup
POLL_INTERVAL = _interval('POLL_INTERVAL', '5s', timedelta(seconds=5))
LATE_THRESHOLD = _interval('LATE_THRESHOLD', '1min', timedelta(minutes=1))
RETRY_BACKOFF = _interval('RETRY_BACKOFF', '10s', timedelta(seconds=10))
RETRY_COUNTER_TTL = _interval('RETRY_COUNTER_TTL', '10min', timedelta(minutes=10))
SEND_TIMEOUT = _interval('SEND_TIMEOUT', '10s', timedelta(seconds=10))

RAW_MAX_ATTEMPTS = os.getenv('MAX_DELIVERY_ATTEMPTS', '3')
MAX_DELIVERY_ATTEMPTS = int(RAW_MAX_ATTEMPTS) if RAW_MAX_ATTEMPTS.isdigit() else 3

# "module:function" callables turning raw message text into TimerEvents
EVENT_EXTRACTORS = [
    path.strip() for path in os.getenv('EVENT_EXTRACTORS', '').split(',') if path.strip()
]
