"""
Package: bot/scheduler

Provides the persisted timer engine: TimerStore, DeliveryManager, TimerScheduler,
the ChannelTransport, and the duration normalizer.
"""
from .timer import Timer, TimerEvent, TIMER_KINDS
from .normalize import normalize
from .store import TimerStore
from .delivery import DeliveryManager, DeliveryState
from .status import TimerStatus
from .transport import ChannelTransport
from .manager import TimerScheduler
