import json
import sys
import uuid
from datetime import datetime, timezone
from pathlib import Path

import requests

# Add project root to Python path
sys.path.append(str(Path(__file__).parent.parent))

from api.services.twitch import compute_signature, REDEMPTION_EVENT
from lib.config import get_settings

def send_test_vote(base_url: str, user_input: str):
    """Send a signed channel points redemption to a running deployment"""
    settings = get_settings()
    if not settings.twitch_eventsub_secret:
        print("Error: TWITCH_EVENTSUB_SECRET not found in environment variables")
        return

    payload = {
        'subscription': {
            'id': str(uuid.uuid4()),
            'type': REDEMPTION_EVENT,
            'version': '1',
            'status': 'enabled'
        },
        'event': {
            'id': str(uuid.uuid4()),
            'user_id': '12345',
            'user_login': 'testviewer',
            'user_name': 'TestViewer',
            'user_input': user_input,
            'status': 'unfulfilled',
            'reward': {'id': str(uuid.uuid4()), 'title': 'Vote for an idea', 'cost': 100},
            'redeemed_at': datetime.now(timezone.utc).isoformat()
        }
    }
    body = json.dumps(payload).encode('utf-8')
    message_id = str(uuid.uuid4())
    timestamp = datetime.now(timezone.utc).isoformat()

    headers = {
        'Content-Type': 'application/json',
        'Twitch-Eventsub-Message-Id': message_id,
        'Twitch-Eventsub-Message-Timestamp': timestamp,
        'Twitch-Eventsub-Message-Type': 'notification',
        'Twitch-Eventsub-Message-Signature': compute_signature(
            message_id, timestamp, body, settings.twitch_eventsub_secret
        )
    }

    try:
        response = requests.post(f"{base_url}/api/twitch-webhook", data=body, headers=headers, timeout=10)
        print(f"Status Code: {response.status_code}")
        print(f"Response: {response.text}")
    except requests.RequestException as e:
        print(f"Error sending test vote: {str(e)}")

if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python scripts/send_test_vote.py <vote text> [base url]")
        sys.exit(1)

    base_url = sys.argv[2] if len(sys.argv) > 2 else 'http://localhost:8000'
    send_test_vote(base_url.rstrip('/'), sys.argv[1])
