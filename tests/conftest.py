import json
import pytest
import sys
from pathlib import Path

from redis.exceptions import ConnectionError, ResponseError

# Add project root to Python path
project_root = str(Path(__file__).parent.parent)
sys.path.append(project_root)

from api.routes import create_app
from api.services.storage import StorageService
from lib.config import Settings
from lib.database import IDEAS_KEY

TEST_SECRET = 'test-eventsub-secret'

class InMemoryRedis:
    """Test double for the handful of Redis commands the app uses"""

    def __init__(self):
        self.data = {}
        self.fail = False
        self.fail_writes = False
        self.calls = []

    def _check(self, command, write=False):
        self.calls.append(command)
        if self.fail or (write and self.fail_writes):
            raise ConnectionError(f"Connection refused during {command}")

    def ping(self):
        self._check('ping')
        return True

    def get(self, key):
        self._check('get')
        return self.data.get(key)

    def set(self, key, value):
        self._check('set', write=True)
        self.data[key] = value
        return True

    def lrange(self, key, start, end):
        self._check('lrange')
        items = self.data.get(key, [])
        end = len(items) if end == -1 else end + 1
        return list(items[start:end])

    def llen(self, key):
        self._check('llen')
        return len(self.data.get(key, []))

    def lset(self, key, index, value):
        self._check('lset', write=True)
        items = self.data.get(key, [])
        if index >= len(items):
            raise ResponseError("index out of range")
        items[index] = value
        return True

    def rpush(self, key, value):
        self._check('rpush', write=True)
        self.data.setdefault(key, []).append(value)
        return len(self.data[key])

    def lpush(self, key, value):
        self._check('lpush', write=True)
        self.data.setdefault(key, []).insert(0, value)
        return len(self.data[key])

    def sadd(self, key, *values):
        self._check('sadd', write=True)
        self.data.setdefault(key, set()).update(values)
        return len(values)

    def smembers(self, key):
        self._check('smembers')
        return set(self.data.get(key, set()))

    def write_calls(self):
        return [call for call in self.calls if call in ('set', 'lset', 'rpush', 'lpush', 'sadd')]

def make_idea(idea_id, votes=0, voters=None, **extra):
    idea = {
        'id': idea_id,
        'username': 'viewer',
        'idea': 'Build a typing game on stream',
        'timestamp': '2024-12-04T17:28:53.333000+00:00',
        'status': 'pending',
        'votes': votes,
        'voters': voters if voters is not None else []
    }
    idea.update(extra)
    return idea

def seed_ideas(redis_client, ideas):
    redis_client.data[IDEAS_KEY] = [json.dumps(idea) for idea in ideas]

def stored_ideas(redis_client):
    return [json.loads(raw) for raw in redis_client.data.get(IDEAS_KEY, [])]

@pytest.fixture
def redis_client():
    return InMemoryRedis()

@pytest.fixture
def storage_service(redis_client):
    return StorageService(redis_client)

@pytest.fixture
def settings():
    return Settings(
        redis_url='redis://localhost:6379/0',
        twitch_eventsub_secret=TEST_SECRET,
        twitch_client_id='',
        twitch_client_secret='',
        discord_webhook_url='https://discord.test/api/webhooks/1/abc',
        default_channel='itsflannelbeard'
    )

@pytest.fixture
def test_client(settings, redis_client):
    app = create_app(settings, redis_client=redis_client)
    app.config['TESTING'] = True
    return app.test_client()
