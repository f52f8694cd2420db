from api.routes import create_app
from lib.config import get_settings
import logging

logger = logging.getLogger(__name__)

if __name__ == "__main__":
    settings = get_settings()
    app = create_app(settings)

    # Log startup
    logger.info("Starting Flask server...")
    app.run(debug=True, port=8000)
