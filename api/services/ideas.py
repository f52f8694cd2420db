import logging
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

from redis.exceptions import RedisError

from lib.error_handler import ValidationError, StorageError
from .storage import StorageService
from .discord import DiscordService

logger = logging.getLogger(__name__)

MIN_IDEA_LENGTH = 10

def epoch_millis(moment: datetime) -> int:
    return int(moment.timestamp()) * 1000 + moment.microsecond // 1000

def vote_count(idea: Dict[str, Any]) -> int:
    """Sort key for ideas; a missing or garbled count sorts as 0"""
    try:
        return int(idea.get('votes') or 0)
    except (TypeError, ValueError):
        return 0

class IdeaService:
    def __init__(self, storage_service: StorageService, discord_service: Optional[DiscordService] = None, clock=None):
        self.storage = storage_service
        self.discord = discord_service
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def submit_idea(self, username, idea) -> Dict[str, Any]:
        """Validate and store a new idea, then notify Discord"""
        username = username.strip() if isinstance(username, str) else ''
        idea_text = idea.strip() if isinstance(idea, str) else ''

        if not username:
            raise ValidationError("Username is required")
        if len(idea_text) < MIN_IDEA_LENGTH:
            raise ValidationError(f"Idea must be at least {MIN_IDEA_LENGTH} characters")

        now = self.clock()
        # IDs are creation-time milliseconds; two submissions in the same ms collide.
        record = {
            'id': str(epoch_millis(now)),
            'username': username,
            'idea': idea_text,
            'timestamp': now.isoformat(),
            'status': 'pending',
            'votes': 0,
            'voters': []
        }

        try:
            self.storage.append_idea(record)
        except RedisError as e:
            raise StorageError(f"Failed to store idea: {str(e)}",
                               user_message="Failed to submit idea. Please try again.")

        if self.discord:
            self.discord.notify_new_idea(record)

        return record

    def list_ideas(self) -> List[Dict[str, Any]]:
        """All well-formed ideas, most votes first"""
        try:
            ideas = self.storage.load_ideas()
        except RedisError as e:
            raise StorageError(f"Failed to load ideas: {str(e)}",
                               user_message="Failed to load ideas")

        ideas = [idea for idea in ideas if isinstance(idea, dict)]
        return sorted(ideas, key=vote_count, reverse=True)
