import json
import logging
from typing import Optional, List, Dict, Any, Callable

from redis.exceptions import RedisError

from lib.database import (IDEAS_KEY, SURVEY_KEY, CHANNELS_KEY, KANBAN_KEY,
                          schedule_key, slot_key, timer_key)
from lib.error_handler import StorageError

logger = logging.getLogger(__name__)

SLOT_FIELDS = ('hour', 'time', 'category', 'activity', 'description')
TIMER_FIELDS = ('duration', 'startTime', 'pausedAt', 'isRunning')

class StorageService:
    """Redis access for every handler.

    Each call is a single Redis command; nothing here spans keys atomically.
    """

    def __init__(self, redis_client=None, client_factory: Optional[Callable] = None):
        if redis_client is None and client_factory is None:
            raise ValueError("Either redis_client or client_factory is required")
        self._redis = redis_client
        self._client_factory = client_factory
        self.ideas_key = IDEAS_KEY
        self.survey_key = SURVEY_KEY
        logger.info(f"Storage service initialized with ideas key: {self.ideas_key}")

    @property
    def redis(self):
        """The Redis client, created on first use when built from a factory"""
        if self._redis is None:
            self._redis = self._client_factory()
        return self._redis

    def _decode(self, raw: Optional[str], key: str) -> Optional[Any]:
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.warning(f"Skipping invalid JSON in {key}: {str(e)}")
            return None

    def load_ideas(self) -> List[Optional[Dict[str, Any]]]:
        """Load the whole idea list in insertion order.

        Positions are preserved: an element that is not valid JSON comes back as None
        so that list indexes still line up with Redis.
        """
        try:
            raw_ideas = self.redis.lrange(self.ideas_key, 0, -1)
        except RedisError as e:
            logger.error(f"Failed to load ideas: {str(e)}")
            raise
        return [self._decode(raw, self.ideas_key) for raw in raw_ideas]

    def replace_idea(self, index: int, idea: Dict[str, Any]) -> None:
        """Overwrite the idea stored at a list position"""
        try:
            self.redis.lset(self.ideas_key, index, json.dumps(idea))
        except RedisError as e:
            logger.error(f"Failed to store idea at position {index}: {str(e)}")
            raise

    def append_idea(self, idea: Dict[str, Any]) -> int:
        try:
            length = self.redis.rpush(self.ideas_key, json.dumps(idea))
            logger.info(f"Idea {idea.get('id')} stored, list length now {length}")
            return length
        except RedisError as e:
            logger.error(f"Failed to store idea: {str(e)}")
            raise

    def store_survey_response(self, response: Dict[str, Any]) -> None:
        try:
            self.redis.lpush(self.survey_key, json.dumps(response))
            logger.info(f"Survey response saved to Redis: {response.get('id')}")
        except RedisError as e:
            logger.error(f"Failed to store survey response: {str(e)}")
            raise

    def get_json(self, key: str) -> Optional[Any]:
        try:
            return self._decode(self.redis.get(key), key)
        except RedisError as e:
            logger.error(f"Failed to read {key}: {str(e)}")
            raise

    def set_json(self, key: str, value: Any) -> None:
        try:
            self.redis.set(key, json.dumps(value))
        except RedisError as e:
            logger.error(f"Failed to write {key}: {str(e)}")
            raise

    def get_channels(self) -> List[str]:
        try:
            return list(self.redis.smembers(CHANNELS_KEY))
        except RedisError as e:
            logger.error(f"Failed to load channels: {str(e)}")
            raise

    def get_schedule_field(self, channel_name: str, field: str) -> str:
        return self.redis.get(schedule_key(channel_name, field)) or ''

    def get_slot_indices(self, channel_name: str) -> List[str]:
        return self.redis.lrange(schedule_key(channel_name, 'slots'), 0, -1)

    def get_slot_fields(self, channel_name: str, index: str) -> Dict[str, str]:
        """Raw string fields of one schedule slot; missing fields are ''"""
        return {
            field: self.redis.get(slot_key(channel_name, index, field)) or ''
            for field in SLOT_FIELDS
        }

    def count_schedule_slots(self, channel_name: str) -> int:
        return self.redis.llen(schedule_key(channel_name, 'slots'))

    def get_schedule_categories(self, channel_name: str) -> Dict[str, Any]:
        key = schedule_key(channel_name, 'categories')
        categories = self._decode(self.redis.get(key), key)
        return categories if isinstance(categories, dict) else {}

    def get_timer_fields(self, channel_name: str) -> Dict[str, Optional[str]]:
        try:
            return {field: self.redis.get(timer_key(channel_name, field)) for field in TIMER_FIELDS}
        except RedisError as e:
            logger.error(f"Failed to load timer state for {channel_name}: {str(e)}")
            raise

    def get_kanban_items(self) -> List[Dict[str, Any]]:
        items = self.get_json(KANBAN_KEY)
        return items if isinstance(items, list) else []

    def ping(self) -> bool:
        try:
            return bool(self.redis.ping())
        except (RedisError, StorageError) as e:
            logger.error(f"Redis ping failed: {str(e)}")
            return False
