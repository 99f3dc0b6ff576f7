"""AWS Lambda handler running one event sync pass."""
import json
import logging
import time
from typing import Any, Dict

from processor.event_processor import EventProcessor
from processor.event_sync import EventSynchronizer
from settings import SyncSettings
from sources.conf42_client import Conf42Client
from sources.family_client import FamilySourceClient
from storage.dynamodb_store import DynamoDBEventStore

# Attributes every LogRecord has; anything else came in through ``extra``.
_RESERVED_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {'message', 'asctime'}


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON, including any ``extra`` fields."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and key not in log_data:
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # Quiet per-request noise from the HTTP and AWS clients
    for noisy in ('urllib3', 'botocore', 'boto3'):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def build_synchronizer(settings: SyncSettings) -> EventSynchronizer:
    """Wire the store, source clients and processor from settings."""
    store = DynamoDBEventStore(
        table_name=settings.table_name,
        users_table_name=settings.users_table_name,
        region_name=settings.region_name
    )

    def family_client(base_url: str) -> FamilySourceClient:
        return FamilySourceClient(
            base_url,
            timeout=settings.timeout_seconds,
            max_retries=settings.fetch_max_retries
        )

    return EventSynchronizer(
        store=store,
        organizer_ids=settings.organizer_ids,
        family_client_factory=family_client,
        conf42_client=Conf42Client(
            timeout=settings.timeout_seconds,
            max_retries=settings.fetch_max_retries
        ),
        processor=EventProcessor(cfp_link_prefix=settings.cfp_link_prefix)
    )


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function, invoked on an EventBridge schedule.

    Args:
        event: EventBridge event payload
        context: Lambda context object

    Returns:
        Response dict with statusCode and summary statistics
    """
    start_time = time.time()

    try:
        settings = SyncSettings.from_env()
    except ValueError as e:
        setup_logging()
        logging.getLogger(__name__).error(f"Invalid configuration: {e}")
        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': 'Invalid configuration',
                'error': str(e),
                'error_type': type(e).__name__
            })
        }

    setup_logging(settings.log_level)
    logger = logging.getLogger(__name__)

    logger.info(
        "Lambda execution started",
        extra={
            'table_name': settings.table_name,
            'organizer_count': len(settings.organizer_ids),
            'timeout_seconds': settings.timeout_seconds
        }
    )

    if not settings.organizer_ids:
        logger.info("Event sync disabled (AUTO_ORGANISERS_IDS not set)")
        return {
            'statusCode': 200,
            'body': json.dumps({'message': 'Event sync disabled'})
        }

    try:
        synchronizer = build_synchronizer(settings)

        logger.info("Synchronizing events with the event store")
        sync_result = synchronizer.sync_all_sources()

        duration = time.time() - start_time
        logger.info(
            "Lambda execution completed successfully",
            extra={
                'duration_seconds': round(duration, 2),
                'events_created': sync_result.created,
                'events_updated': sync_result.updated,
                'events_skipped': sync_result.skipped,
                'events_failed': sync_result.failed
            }
        )

        return {
            'statusCode': 200,
            'body': json.dumps({
                'message': 'Sync completed successfully',
                'statistics': {
                    'events_created': sync_result.created,
                    'events_updated': sync_result.updated,
                    'events_skipped': sync_result.skipped,
                    'events_failed': sync_result.failed,
                    'duration_seconds': round(duration, 2)
                },
                'errors': sync_result.errors
            })
        }

    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )
        return {
            'statusCode': 500,
            'body': json.dumps({
                'message': 'Sync failed',
                'error': str(e),
                'error_type': type(e).__name__,
                'duration_seconds': round(duration, 2)
            })
        }
