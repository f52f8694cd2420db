import logging
from datetime import datetime, timezone
from typing import Optional, Mapping, Dict, Any

from redis.exceptions import RedisError

from lib.error_handler import ValidationError, StorageError
from .ideas import epoch_millis
from .storage import StorageService

logger = logging.getLogger(__name__)

OTHER_CATEGORY = 'Other'

def extract_ip_address(headers: Mapping[str, str], remote_addr: Optional[str] = None) -> str:
    """Best guess at the client IP behind Cloudflare / Vercel proxies"""
    if headers.get('cf-connecting-ip'):
        return headers['cf-connecting-ip']

    forwarded_for = headers.get('x-forwarded-for')
    if forwarded_for:
        return forwarded_for.split(',')[0].strip()

    return remote_addr or 'unknown'

class SurveyService:
    def __init__(self, storage_service: StorageService, clock=None):
        self.storage = storage_service
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def submit_survey(self, categories, other_text, ip_address: str) -> Dict[str, Any]:
        if not categories or not isinstance(categories, list):
            raise ValidationError("Please select at least one category")

        wants_other = OTHER_CATEGORY in categories
        if wants_other and (not isinstance(other_text, str) or not other_text.strip()):
            raise ValidationError('Please specify what "Other" category you have in mind')

        now = self.clock()
        response = {
            'id': str(epoch_millis(now)),
            'timestamp': now.isoformat(),
            'ip': ip_address,
            'categories': categories,
            'otherText': other_text.strip() if wants_other else None
        }

        try:
            self.storage.store_survey_response(response)
        except RedisError as e:
            raise StorageError(f"Failed to store survey response: {str(e)}",
                               user_message="Failed to submit survey. Please try again.")
        return response
