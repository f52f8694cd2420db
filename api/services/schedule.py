import logging
from typing import List, Dict, Any

from redis.exceptions import RedisError

from lib.error_handler import StorageError
from .storage import StorageService

logger = logging.getLogger(__name__)

SCHEDULE_FIELDS = ('date', 'startDate', 'endDate', 'startTime', 'endTime')

def parse_hour(value) -> int:
    """Stored slot hour as an int; blank or non-numeric values count as 0"""
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0

class ScheduleService:
    def __init__(self, storage_service: StorageService):
        self.storage = storage_service

    def _channel_summary(self, channel_name: str) -> Dict[str, Any]:
        try:
            return {
                'channelName': channel_name,
                'date': self.storage.get_schedule_field(channel_name, 'date'),
                'startDate': self.storage.get_schedule_field(channel_name, 'startDate'),
                'startTime': self.storage.get_schedule_field(channel_name, 'startTime'),
                'slotCount': self.storage.count_schedule_slots(channel_name)
            }
        except RedisError as e:
            logger.error(f"Error getting info for channel {channel_name}: {str(e)}")
            return {
                'channelName': channel_name,
                'date': '',
                'startDate': '',
                'startTime': '',
                'slotCount': 0
            }

    def list_channels(self) -> List[Dict[str, Any]]:
        """Every channel with a schedule, sorted by name"""
        try:
            channels = self.storage.get_channels()
        except RedisError as e:
            raise StorageError(f"Failed to load channels: {str(e)}",
                               user_message="Failed to retrieve channels")

        summaries = [self._channel_summary(channel) for channel in channels]
        return sorted(summaries, key=lambda summary: summary['channelName'])

    def _load_slot(self, channel_name: str, index: str) -> Dict[str, Any]:
        slot = self.storage.get_slot_fields(channel_name, index)
        slot['hour'] = parse_hour(slot['hour'])
        return slot

    def get_schedule(self, channel_name: str) -> Dict[str, Any]:
        """The 24 hour schedule for one channel.

        Slots come back in the order of the channel's slot index list. Unknown
        channels come back with blank fields and no slots.
        """
        try:
            schedule = {'channelName': channel_name}
            for field in SCHEDULE_FIELDS:
                schedule[field] = self.storage.get_schedule_field(channel_name, field)
            indices = self.storage.get_slot_indices(channel_name)
            schedule['timeSlots'] = [self._load_slot(channel_name, index) for index in indices]
            schedule['categories'] = self.storage.get_schedule_categories(channel_name)
        except RedisError as e:
            raise StorageError(f"Failed to load schedule for {channel_name}: {str(e)}",
                               user_message="Failed to retrieve schedule")

        logger.info(f"Loaded schedule for {channel_name} with {len(schedule['timeSlots'])} slots")
        return schedule
