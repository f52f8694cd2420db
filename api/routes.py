from flask import Flask, request, Response, jsonify
import json
import logging
import sys
from typing import Optional

from redis.exceptions import RedisError

from lib.config import Settings, get_settings
from lib.database import create_redis_client, normalize_channel
from lib.error_handler import AppError, ErrorHandler, SignatureError, StorageError, ValidationError

from .services.discord import DiscordService
from .services.ideas import IdeaService
from .services.schedule import ScheduleService
from .services.storage import StorageService
from .services.survey import SurveyService, extract_ip_address
from .services.timer import TimerService
from .services.twitch_status import TwitchStatusService
from .services.viewer_events import ViewerEventService
from .services.voting import VotingService
from .services import twitch

# Configure detailed logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stdout,
    force=True  # Ensure our config takes precedence
)

logger = logging.getLogger(__name__)

DATA_TYPES = ('schedule', 'channels', 'ideas', 'viewer-goals')

def json_object_body() -> dict:
    """The request's JSON body; anything but an object is a 400"""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data

def create_app(settings: Optional[Settings] = None, redis_client=None) -> Flask:
    """Build the Flask app with every service sharing one Redis client.

    Without an explicit client one is created from settings on first use, so a
    missing REDIS_URL only fails the requests that need Redis.
    """
    settings = settings or get_settings()

    app = Flask(__name__)
    app.config['SETTINGS'] = settings

    logger.info("Initializing services...")
    if redis_client is None:
        storage_service = StorageService(client_factory=lambda: create_redis_client(settings))
    else:
        storage_service = StorageService(redis_client)
    discord_service = DiscordService(settings.discord_webhook_url, timeout=settings.discord_timeout)
    idea_service = IdeaService(storage_service, discord_service=discord_service)
    voting_service = VotingService(storage_service, default_points_cost=settings.default_points_cost)
    survey_service = SurveyService(storage_service)
    schedule_service = ScheduleService(storage_service)
    timer_service = TimerService(storage_service)
    viewer_event_service = ViewerEventService(storage_service)
    twitch_status_service = TwitchStatusService(settings.twitch_client_id, settings.twitch_client_secret,
                                                timeout=settings.twitch_timeout)
    logger.info("All services initialized successfully")

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        body, status_code = ErrorHandler.handle_app_error(error)
        return jsonify(body), status_code

    @app.route('/', methods=['GET'])
    def root():
        """Basic health check"""
        return jsonify({
            'status': 'healthy',
            'redis': storage_service.ping()
        })

    @app.route('/api/twitch-webhook', methods=['GET', 'POST'])
    def twitch_webhook():
        if request.method != 'POST':
            logger.warning(f"Method not allowed: {request.method}")
            return jsonify({'error': 'Method not allowed'}), 405

        if not settings.twitch_eventsub_secret:
            logger.error("TWITCH_EVENTSUB_SECRET not configured")
            return jsonify({'error': 'Webhook secret not configured'}), 500

        message_id = twitch.get_header(request.headers, twitch.MESSAGE_ID_HEADER)
        timestamp = twitch.get_header(request.headers, twitch.TIMESTAMP_HEADER)
        signature = twitch.get_header(request.headers, twitch.SIGNATURE_HEADER)
        message_type = twitch.get_header(request.headers, twitch.MESSAGE_TYPE_HEADER)
        raw_body = request.get_data()

        logger.info(f"Twitch webhook received: type={message_type} id={message_id or 'MISSING'}")

        if not message_id or not timestamp or not signature:
            logger.error("Missing required Twitch EventSub headers")
            return jsonify({'error': 'Missing required Twitch EventSub headers'}), 400

        if not twitch.verify_signature(message_id, timestamp, raw_body, signature,
                                       settings.twitch_eventsub_secret):
            raise SignatureError(f"Signature verification failed for message {message_id}")

        try:
            body = json.loads(raw_body)
        except ValueError:
            body = None
        if not isinstance(body, dict):
            logger.error("Webhook body is not a JSON object")
            return jsonify({'error': 'Invalid JSON body'}), 400

        if message_type == twitch.VERIFICATION_MESSAGE or 'challenge' in body:
            logger.info("Handling verification challenge")
            return Response(str(body.get('challenge', '')), status=200, mimetype='text/plain')

        subscription = body.get('subscription') or {}
        if message_type == twitch.REVOCATION_MESSAGE:
            logger.warning(f"Subscription {subscription.get('id')} revoked: {subscription.get('status')}")
            return jsonify({'message': 'Revocation acknowledged'}), 200

        event_type = subscription.get('type')
        event = body.get('event') or {}

        if event_type == twitch.REDEMPTION_EVENT:
            redemption = twitch.extract_redemption(event)
            result = voting_service.process_vote(**redemption)
            return jsonify({
                'success': True,
                'message': 'Vote recorded',
                'ideaId': result.idea_id,
                'votes': result.votes,
                'voters': result.voters
            })

        if viewer_event_service.is_viewer_event(event_type):
            result = viewer_event_service.handle_event(event_type, event)
            return jsonify({
                'message': 'Event processed successfully',
                'eventType': event_type,
                'result': result
            })

        logger.info(f"Unhandled event type: {event_type}")
        return jsonify({'message': 'Event type not handled'}), 200

    @app.route('/api/submit-idea', methods=['POST'])
    def submit_idea():
        data = json_object_body()
        logger.info(f"Idea submission from {data.get('username')}")

        idea = idea_service.submit_idea(data.get('username'), data.get('idea'))
        return jsonify({
            'success': True,
            'message': 'Idea submitted successfully!',
            'ideaId': idea['id'],
            'voteCode': idea['id'][-6:]
        })

    @app.route('/api/get-ideas', methods=['GET'])
    def get_ideas():
        return jsonify({'success': True, 'ideas': idea_service.list_ideas()})

    @app.route('/api/submit-survey', methods=['POST'])
    def submit_survey():
        data = json_object_body()
        ip_address = extract_ip_address(request.headers, request.remote_addr)

        response = survey_service.submit_survey(data.get('categories'), data.get('otherText'), ip_address)
        return jsonify({
            'success': True,
            'message': 'Survey submitted successfully!',
            'responseId': response['id']
        })

    @app.route('/api/get-channels', methods=['GET'])
    def get_channels():
        return jsonify({'success': True, 'channels': schedule_service.list_channels()})

    @app.route('/api/get-24hour-schedule', methods=['GET'])
    def get_24hour_schedule():
        channel_name = normalize_channel(request.args.get('channelName'), settings.default_channel)
        return jsonify(schedule_service.get_schedule(channel_name))

    @app.route('/api/get-widget-timer', methods=['GET'])
    def get_widget_timer():
        channel_name = normalize_channel(request.args.get('channelName'), settings.default_channel)
        return jsonify(timer_service.get_widget_timer(channel_name))

    @app.route('/api/get-viewer-goals', methods=['GET'])
    def get_viewer_goals():
        channel_name = normalize_channel(request.args.get('channelName'), settings.default_channel)
        return jsonify(viewer_event_service.get_viewer_goals(channel_name))

    @app.route('/api/twitch-status', methods=['GET'])
    def twitch_status():
        status = twitch_status_service.get_stream_status(settings.twitch_channel_name)
        response = jsonify(status)
        response.headers['Cache-Control'] = 's-maxage=60, stale-while-revalidate'
        return response

    @app.route('/api/kanban', methods=['GET'])
    def get_kanban():
        try:
            items = storage_service.get_kanban_items()
        except RedisError as e:
            raise StorageError(f"Failed to load kanban items: {str(e)}", user_message="Internal server error")
        return jsonify({'success': True, 'items': items})

    @app.route('/api/data', methods=['GET'])
    def get_data():
        """Combined read endpoint: ?type=schedule|channels|ideas|viewer-goals"""
        data_type = request.args.get('type')
        if not data_type:
            raise ValidationError("Type parameter is required. Use ?type=schedule|channels|ideas|viewer-goals")
        if data_type not in DATA_TYPES:
            raise ValidationError(f"Unknown type: {data_type}. Use schedule, channels, ideas, or viewer-goals")

        channel_name = normalize_channel(request.args.get('channelName'), settings.default_channel)
        if data_type == 'schedule':
            return jsonify(schedule_service.get_schedule(channel_name))
        if data_type == 'channels':
            return jsonify({'success': True, 'channels': schedule_service.list_channels()})
        if data_type == 'ideas':
            ideas = idea_service.list_ideas()
            return jsonify({'success': True, 'ideas': ideas, 'count': len(ideas)})
        return jsonify(viewer_event_service.get_viewer_goals(channel_name))

    return app
