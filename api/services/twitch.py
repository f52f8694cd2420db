import hashlib
import hmac
import logging
from typing import Optional, Mapping, Dict, Any

logger = logging.getLogger(__name__)

MESSAGE_ID_HEADER = 'Twitch-Eventsub-Message-Id'
TIMESTAMP_HEADER = 'Twitch-Eventsub-Message-Timestamp'
SIGNATURE_HEADER = 'Twitch-Eventsub-Message-Signature'
MESSAGE_TYPE_HEADER = 'Twitch-Eventsub-Message-Type'

VERIFICATION_MESSAGE = 'webhook_callback_verification'
NOTIFICATION_MESSAGE = 'notification'
REVOCATION_MESSAGE = 'revocation'

REDEMPTION_EVENT = 'channel.channel_points_custom_reward_redemption.add'

def get_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    """Case-insensitive header lookup"""
    value = headers.get(name)
    if value:
        return value
    lower_name = name.lower()
    for key, value in headers.items():
        if key.lower() == lower_name:
            return value
    return None

def compute_signature(message_id: str, timestamp: str, body: bytes, secret: str) -> str:
    message = message_id.encode('utf-8') + timestamp.encode('utf-8') + body
    digest = hmac.new(secret.encode('utf-8'), msg=message, digestmod=hashlib.sha256).hexdigest()
    return f"sha256={digest}"

def verify_signature(message_id: Optional[str], timestamp: Optional[str], body: Optional[bytes],
                     signature: Optional[str], secret: Optional[str]) -> bool:
    """Check an EventSub HMAC-SHA256 signature over the raw request body"""
    if not signature or not secret or not message_id or not timestamp or not body:
        return False

    if isinstance(body, str):
        body = body.encode('utf-8')

    expected = compute_signature(message_id, timestamp, body, secret)
    return hmac.compare_digest(expected.encode('utf-8'), signature.strip().encode('utf-8'))

def extract_redemption(event: Dict[str, Any]) -> Dict[str, Any]:
    """Pull the vote fields out of a channel points redemption event"""
    reward = event.get('reward') or {}
    return {
        'user_input': event.get('user_input'),
        'user_id': event.get('user_id'),
        'username': event.get('user_name') or event.get('user_login'),
        'points_spent': reward.get('cost')
    }
