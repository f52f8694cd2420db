import logging
import time
from typing import Optional, Dict, Any

from redis.exceptions import RedisError

from lib.error_handler import StorageError
from .storage import StorageService

logger = logging.getLogger(__name__)

def format_duration(milliseconds: int) -> str:
    """Milliseconds as HH:MM:SS; hours may exceed 24"""
    if milliseconds <= 0:
        return '00:00:00'
    hours, remainder = divmod(int(milliseconds) // 1000, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"

def parse_millis(value: Optional[str]) -> Optional[int]:
    """Stored millisecond value as an int, or None when unreadable"""
    if value is None:
        return None
    digits = str(value).strip()
    try:
        return int(digits)
    except ValueError:
        try:
            return int(float(digits))
        except ValueError:
            return None

class TimerService:
    """Countdown for the OBS timer widget.

    State lives in four string keys per channel, all times in milliseconds:
    duration, startTime (epoch ms when last started), pausedAt (remaining ms
    when paused) and isRunning ("true"/"false").
    """

    def __init__(self, storage_service: StorageService, clock=None):
        self.storage = storage_service
        self.clock = clock or (lambda: int(time.time() * 1000))

    def remaining_millis(self, duration: int, start_time: Optional[int], paused_at: Optional[int],
                         is_running: bool) -> int:
        if is_running and start_time:
            return max(0, duration - (self.clock() - start_time))
        if paused_at is not None:
            return max(0, paused_at)
        # Not started yet
        return duration

    def get_widget_timer(self, channel_name: str) -> Dict[str, Any]:
        try:
            fields = self.storage.get_timer_fields(channel_name)
        except RedisError as e:
            raise StorageError(f"Failed to load timer: {str(e)}", user_message="Failed to get timer state")

        if not fields.get('duration'):
            return {
                'success': True,
                'remainingTime': 0,
                'isRunning': False,
                'formattedTime': format_duration(0),
                'isExpired': False
            }

        is_running = fields.get('isRunning') == 'true'
        remaining = self.remaining_millis(
            parse_millis(fields['duration']) or 0,
            parse_millis(fields.get('startTime')),
            parse_millis(fields.get('pausedAt')),
            is_running
        )
        is_expired = remaining <= 0

        return {
            'success': True,
            'remainingTime': remaining,
            'isRunning': is_running and not is_expired,
            'formattedTime': format_duration(remaining),
            'isExpired': is_expired
        }
