from pydantic import BaseModel
from dotenv import load_dotenv
import os

load_dotenv()
load_dotenv('.env.local')

class Settings(BaseModel):
    # Redis settings
    redis_url: str = os.getenv('REDIS_URL', '')
    redis_timeout: float = float(os.getenv('REDIS_TIMEOUT', '5'))

    # Twitch settings
    twitch_eventsub_secret: str = os.getenv('TWITCH_EVENTSUB_SECRET', '')
    default_points_cost: int = 100
    twitch_client_id: str = os.getenv('TWITCH_CLIENT_ID', '')
    twitch_client_secret: str = os.getenv('TWITCH_CLIENT_SECRET', '')
    twitch_channel_name: str = os.getenv('TWITCH_CHANNEL_NAME', 'itsFlannelBeard')
    twitch_timeout: float = float(os.getenv('TWITCH_TIMEOUT', '10'))

    # Discord settings
    discord_webhook_url: str = os.getenv('DISCORD_WEBHOOK_URL', '')
    discord_timeout: float = float(os.getenv('DISCORD_TIMEOUT', '5'))

    # Site settings
    default_channel: str = os.getenv('DEFAULT_CHANNEL', 'itsflannelbeard')

def get_settings() -> Settings:
    return Settings()
