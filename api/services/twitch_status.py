import logging
import time
import requests
from typing import Optional, Dict, Any

from lib.error_handler import StreamStatusError

logger = logging.getLogger(__name__)

TOKEN_URL = 'https://id.twitch.tv/oauth2/token'
USERS_URL = 'https://api.twitch.tv/helix/users'
STREAMS_URL = 'https://api.twitch.tv/helix/streams'
TOKEN_EXPIRY_MARGIN = 300

class TwitchStatusService:
    """Live status of the site's channel from the Twitch Helix API.

    The app access token is cached on the instance until shortly before it expires.
    """

    def __init__(self, client_id: str, client_secret: str, timeout: float = 10.0, clock=None):
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout
        self.clock = clock or time.time
        self._token: Optional[str] = None
        self._token_expiry = 0.0

    def get_token(self) -> str:
        if self._token and self.clock() < self._token_expiry:
            return self._token

        if not self.client_id or not self.client_secret:
            raise StreamStatusError("Twitch credentials not configured")

        try:
            response = requests.post(TOKEN_URL, data={
                'client_id': self.client_id,
                'client_secret': self.client_secret,
                'grant_type': 'client_credentials'
            }, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise StreamStatusError(f"Failed to get Twitch OAuth token: {str(e)}")

        self._token = data['access_token']
        self._token_expiry = self.clock() + int(data.get('expires_in', 0)) - TOKEN_EXPIRY_MARGIN
        logger.info("Twitch app access token refreshed")
        return self._token

    def _helix_get(self, url: str, params: Dict[str, str]) -> list:
        headers = {
            'Authorization': f"Bearer {self.get_token()}",
            'Client-Id': self.client_id
        }
        try:
            response = requests.get(url, params=params, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            return response.json().get('data') or []
        except (requests.RequestException, ValueError) as e:
            raise StreamStatusError(f"Twitch request to {url} failed: {str(e)}")

    def get_stream_status(self, channel_name: str) -> Dict[str, Any]:
        users = self._helix_get(USERS_URL, {'login': channel_name})
        if not users:
            raise StreamStatusError(f"Twitch channel not found: {channel_name}")

        streams = self._helix_get(STREAMS_URL, {'user_id': users[0]['id']})
        if not streams:
            return {'isLive': False, 'channelName': channel_name}

        stream = streams[0]
        return {
            'isLive': True,
            'channelName': channel_name,
            'viewerCount': stream.get('viewer_count'),
            'title': stream.get('title'),
            'gameName': stream.get('game_name'),
            'thumbnailUrl': stream.get('thumbnail_url'),
            'startedAt': stream.get('started_at')
        }
