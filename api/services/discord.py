import logging
import requests
from typing import Dict, Any

from lib.error_handler import ErrorHandler

logger = logging.getLogger(__name__)

class DiscordService:
    def __init__(self, webhook_url: str, timeout: float = 5.0):
        self.webhook_url = webhook_url
        self.timeout = timeout
        if not webhook_url:
            logger.warning("Discord webhook URL not configured, notifications disabled")

    def build_idea_message(self, idea: Dict[str, Any]) -> Dict[str, Any]:
        vote_code = str(idea['id'])[-6:]
        return {
            'embeds': [{
                'title': 'New idea submitted',
                'description': idea['idea'][:4000],
                'color': 0x22D3EE,
                'fields': [
                    {'name': 'Submitted by', 'value': idea['username'], 'inline': True},
                    {'name': 'Vote code', 'value': vote_code, 'inline': True}
                ],
                'footer': {'text': f"Redeem channel points with {vote_code} to vote"},
                'timestamp': idea.get('timestamp')
            }]
        }

    def notify_new_idea(self, idea: Dict[str, Any]) -> bool:
        """Post a new idea to Discord. Never raises."""
        if not self.webhook_url:
            return False

        try:
            logger.info(f"Sending Discord notification for idea {idea['id']}")
            response = requests.post(
                self.webhook_url,
                json=self.build_idea_message(idea),
                timeout=self.timeout
            )
            response.raise_for_status()
            logger.info("Discord notification sent")
            return True
        except requests.RequestException as e:
            ErrorHandler.handle_notification_error(e)
            return False
