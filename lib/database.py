import logging
import redis

from lib.config import Settings
from lib.error_handler import StorageError

logger = logging.getLogger(__name__)

IDEAS_KEY = 'ideas'
SURVEY_KEY = 'survey:responses'
CHANNELS_KEY = '24hour:channels'
KANBAN_KEY = 'kanban:typing-stars:items'

def schedule_key(channel_name: str, field: str) -> str:
    """Key for one field of a channel's 24 hour schedule"""
    return f"24hour:schedule:{channel_name}:{field}"

def slot_key(channel_name: str, index: str, field: str) -> str:
    return schedule_key(channel_name, f"slot:{index}:{field}")

def timer_key(channel_name: str, field: str) -> str:
    return f"widget:timer:{channel_name}:{field}"

def channel_key(channel_name: str, field: str) -> str:
    """Key for viewer goal / last event data of a Twitch channel"""
    return f"twitch:channel:{channel_name.lower()}:{field}"

def normalize_channel(channel_name: str, default: str) -> str:
    channel_name = (channel_name or '').strip().lower()
    return channel_name or default

def create_redis_client(settings: Settings) -> redis.Redis:
    """Create a Redis client from settings.

    Connections are opened lazily by redis-py, so this never touches the network.
    """
    if not settings.redis_url:
        raise StorageError("REDIS_URL environment variable is not set")

    logger.info("Initializing Redis client...")
    client = redis.Redis.from_url(
        settings.redis_url,
        decode_responses=True,
        socket_timeout=settings.redis_timeout,
        socket_connect_timeout=settings.redis_timeout
    )
    logger.info("Redis client initialized successfully")
    return client
