"""Viewer events from EventSub (subs, follows, cheers) and the goals panel that reads them.

Per channel, under twitch:channel:<channel>:
  lastSubscriber / lastFollower / lastCheerer  latest event, JSON with a timestamp
  subGoal / followerGoal                      {"current": n, "target": n}
  firstStreak / checkInLeaderboard            written elsewhere, only read here
"""
import logging
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from redis.exceptions import RedisError

from lib.database import channel_key
from lib.error_handler import EventProcessingError, StorageError
from .storage import StorageService

logger = logging.getLogger(__name__)

SUBSCRIBE_EVENTS = ('channel.subscribe', 'channel.subscription.message')
FOLLOW_EVENT = 'channel.follow'
CHEER_EVENT = 'channel.cheer'

def to_int(value) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0

def event_names(event: Dict[str, Any]):
    """(channel, username) of an event; either may be None"""
    channel_name = event.get('broadcaster_user_login') or event.get('broadcaster_user_name')
    username = event.get('user_name') or event.get('user_login')
    return channel_name, username

class ViewerEventService:
    def __init__(self, storage_service: StorageService, clock=None):
        self.storage = storage_service
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def is_viewer_event(self, event_type: Optional[str]) -> bool:
        return event_type in SUBSCRIBE_EVENTS or event_type in (FOLLOW_EVENT, CHEER_EVENT)

    def store_viewer_event(self, channel_name: str, kind: str, data: Dict[str, Any]) -> Dict[str, Any]:
        record = dict(data, timestamp=self.clock().isoformat())
        self.storage.set_json(channel_key(channel_name, kind), record)
        return record

    def increment_goal(self, channel_name: str, goal: str) -> Dict[str, Any]:
        """Add one to a goal's current count, keeping its target"""
        existing = self.storage.get_json(channel_key(channel_name, goal))
        existing = existing if isinstance(existing, dict) else {}
        updated = {
            'current': to_int(existing.get('current')) + 1,
            'target': to_int(existing.get('target'))
        }
        self.storage.set_json(channel_key(channel_name, goal), updated)
        return updated

    def process_subscribe(self, event: Dict[str, Any]) -> Dict[str, Any]:
        channel_name, username = event_names(event)
        if not channel_name or not username:
            raise EventProcessingError("Missing required fields")

        self.store_viewer_event(channel_name, 'lastSubscriber', {
            'username': username,
            'isGift': bool(event.get('is_gift', False)),
            'tier': event.get('tier') or '1000',
            'userId': event.get('user_id')
        })
        self.increment_goal(channel_name, 'subGoal')

        logger.info(f"Subscribe event processed: {username} subscribed to {channel_name}")
        return {'username': username, 'channelName': channel_name}

    def process_follow(self, event: Dict[str, Any]) -> Dict[str, Any]:
        channel_name, username = event_names(event)
        if not channel_name or not username:
            raise EventProcessingError("Missing required fields")

        self.store_viewer_event(channel_name, 'lastFollower', {
            'username': username,
            'userId': event.get('user_id'),
            'followedAt': event.get('followed_at')
        })
        self.increment_goal(channel_name, 'followerGoal')

        logger.info(f"Follow event processed: {username} followed {channel_name}")
        return {'username': username, 'channelName': channel_name}

    def process_cheer(self, event: Dict[str, Any]) -> Dict[str, Any]:
        """Record a cheer; lastCheerer only moves to a cheer at least as large"""
        channel_name, username = event_names(event)
        bits = to_int(event.get('bits'))
        if not channel_name or not username or bits <= 0:
            raise EventProcessingError("Missing or invalid fields")

        existing = self.storage.get_json(channel_key(channel_name, 'lastCheerer'))
        if not isinstance(existing, dict) or bits >= to_int(existing.get('bits')):
            self.store_viewer_event(channel_name, 'lastCheerer', {
                'username': username,
                'bits': bits,
                'userId': event.get('user_id')
            })

        logger.info(f"Cheer event processed: {username} cheered {bits} bits to {channel_name}")
        return {'username': username, 'bits': bits, 'channelName': channel_name}

    def handle_event(self, event_type: str, event: Dict[str, Any]) -> Dict[str, Any]:
        if event_type in SUBSCRIBE_EVENTS:
            handler = self.process_subscribe
        elif event_type == FOLLOW_EVENT:
            handler = self.process_follow
        elif event_type == CHEER_EVENT:
            handler = self.process_cheer
        else:
            raise ValueError(f"Not a viewer event: {event_type}")

        try:
            return handler(event if isinstance(event, dict) else {})
        except RedisError as e:
            raise StorageError(f"Failed to store {event_type} event: {str(e)}",
                               user_message="Failed to process event")

    def get_viewer_goals(self, channel_name: str) -> Dict[str, Any]:
        fields = ('lastSubscriber', 'lastFollower', 'lastCheerer', 'subGoal', 'followerGoal', 'firstStreak')
        try:
            goals = {field: self.storage.get_json(channel_key(channel_name, field)) for field in fields}
            leaderboard = self.storage.get_json(channel_key(channel_name, 'checkInLeaderboard'))
        except RedisError as e:
            raise StorageError(f"Failed to load viewer goals for {channel_name}: {str(e)}",
                               user_message="Failed to fetch viewer goals")

        for goal in ('subGoal', 'followerGoal'):
            if not isinstance(goals[goal], dict):
                goals[goal] = {'current': 0, 'target': 0}
        goals['checkInLeaderboard'] = leaderboard if isinstance(leaderboard, list) else []
        return goals
