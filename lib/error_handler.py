from typing import Optional
import logging

logger = logging.getLogger(__name__)

class AppError(Exception):
    def __init__(self, message: str, status_code: int = 500, user_message: Optional[str] = None):
        self.message = message
        self.status_code = status_code
        self.user_message = user_message or "An error occurred. Please try again later."
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {'success': False, 'error': self.user_message}

class InvalidIdeaIdError(AppError):
    def __init__(self, message: str = "Could not parse an idea ID"):
        super().__init__(message, status_code=400, user_message="Invalid idea ID format")

class IdeaNotFoundError(AppError):
    def __init__(self, message: str = "No idea matched the vote"):
        super().__init__(message, status_code=400, user_message="Idea not found")

class VoteProcessingError(AppError):
    def __init__(self, message: str = "Vote could not be stored"):
        super().__init__(message, status_code=500, user_message="Failed to process vote")

class SignatureError(AppError):
    def __init__(self, message: str = "Webhook signature verification failed"):
        super().__init__(message, status_code=401, user_message="Invalid signature")

class ValidationError(AppError):
    def __init__(self, user_message: str):
        super().__init__(user_message, status_code=400, user_message=user_message)

class StorageError(AppError):
    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(message, status_code=500, user_message=user_message or "Storage is unavailable. Please try again.")

class EventProcessingError(AppError):
    def __init__(self, details: str):
        super().__init__(details, status_code=400, user_message="Failed to process event")
        self.details = details

    def to_dict(self) -> dict:
        return {'success': False, 'error': self.user_message, 'details': self.details}

class StreamStatusError(AppError):
    def __init__(self, message: str):
        super().__init__(message, status_code=500, user_message="Failed to check stream status")

    def to_dict(self) -> dict:
        return {'error': self.user_message, 'isLive': False}

class ErrorHandler:
    @staticmethod
    def handle_app_error(error: AppError) -> tuple:
        if error.status_code >= 500:
            logger.error(f"{type(error).__name__}: {error.message}")
        else:
            logger.warning(f"{type(error).__name__}: {error.message}")
        return error.to_dict(), error.status_code

    @staticmethod
    def handle_notification_error(error: Exception) -> None:
        logger.error(f"Discord notification error: {str(error)}")
