"""DynamoDB implementation of the event store."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import ClientError

from processor.models import CanonicalEvent, User
from storage.event_store import EventStore, EventStoreError

logger = logging.getLogger(__name__)

_DATE_FIELDS = ('start_date', 'end_date', 'cfp_open_at', 'cfp_close_at')


class DynamoDBEventStore(EventStore):
    """
    Event store backed by two DynamoDB tables.

    Events are keyed by ``slug`` and the slug doubles as the event id.
    Users are keyed by numeric ``user_id``.
    """

    BATCH_GET_SIZE = 100  # DynamoDB BatchGetItem limit

    def __init__(
        self,
        table_name: str,
        users_table_name: str,
        region_name: Optional[str] = None
    ):
        """
        Initialize DynamoDB resource and table references.

        Args:
            table_name: Name of the events table
            users_table_name: Name of the users table
            region_name: AWS region, defaults to the environment's
        """
        self.table_name = table_name
        self.users_table_name = users_table_name
        self.dynamodb = boto3.resource('dynamodb', region_name=region_name)
        self.table = self.dynamodb.Table(table_name)
        logger.info(f"Initialized DynamoDBEventStore for table: {table_name}")

    def find_by_slug(self, slug: str) -> Optional[CanonicalEvent]:
        try:
            response = self.table.get_item(Key={'slug': slug})
        except ClientError as e:
            raise EventStoreError(f"reading event {slug}: {e}") from e

        item = response.get('Item')
        if item is None:
            return None
        return self._item_to_event(item)

    def create(self, event: CanonicalEvent) -> str:
        """
        Put a new event item.

        The write is conditional on the slug being unused, so two creates
        for the same slug never overwrite each other.

        Raises:
            EventStoreError: If the slug exists or the write fails
        """
        item = self._event_to_item(event)
        try:
            self.table.put_item(
                Item=item,
                ConditionExpression='attribute_not_exists(slug)'
            )
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                raise EventStoreError(f"event {event.slug} already exists") from e
            raise EventStoreError(f"creating event {event.slug}: {e}") from e
        return event.slug

    def update_fields(self, event_id: str, fields: Dict[str, Any]) -> None:
        if not fields:
            return

        names = {}
        values = {}
        assignments = []
        for index, (name, value) in enumerate(fields.items()):
            names[f'#f{index}'] = name
            values[f':v{index}'] = self._to_attribute(value)
            assignments.append(f'#f{index} = :v{index}')

        try:
            self.table.update_item(
                Key={'slug': event_id},
                UpdateExpression='SET ' + ', '.join(assignments),
                ConditionExpression='attribute_exists(slug)',
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values
            )
        except ClientError as e:
            raise EventStoreError(f"updating event {event_id}: {e}") from e

    def assign_organizers(self, event_id: str, user_ids: List[int]) -> None:
        if not user_ids:
            return
        try:
            self.table.update_item(
                Key={'slug': event_id},
                UpdateExpression=(
                    'SET organizer_ids = '
                    'list_append(if_not_exists(organizer_ids, :empty), :ids)'
                ),
                ConditionExpression='attribute_exists(slug)',
                ExpressionAttributeValues={
                    ':empty': [],
                    ':ids': [int(user_id) for user_id in user_ids]
                }
            )
        except ClientError as e:
            raise EventStoreError(
                f"assigning organizers to {event_id}: {e}"
            ) from e

    def find_users_by_ids(self, user_ids: List[int]) -> List[User]:
        """
        Read users in batches of 100 keys.

        Returns:
            Users found, in the order DynamoDB returns them
        """
        unique_ids = list(dict.fromkeys(int(user_id) for user_id in user_ids))
        users = []

        for i in range(0, len(unique_ids), self.BATCH_GET_SIZE):
            batch = unique_ids[i:i + self.BATCH_GET_SIZE]
            request = {
                self.users_table_name: {
                    'Keys': [{'user_id': user_id} for user_id in batch]
                }
            }
            try:
                while request:
                    response = self.dynamodb.batch_get_item(RequestItems=request)
                    for item in response.get('Responses', {}).get(
                            self.users_table_name, []):
                        users.append(User(
                            user_id=int(item['user_id']),
                            email=item.get('email', ''),
                            name=item.get('name', '')
                        ))
                    request = response.get('UnprocessedKeys') or None
            except ClientError as e:
                raise EventStoreError(f"reading users: {e}") from e

        return users

    @staticmethod
    def _to_attribute(value: Any) -> Any:
        if isinstance(value, datetime):
            return value.isoformat()
        return value

    def _event_to_item(self, event: CanonicalEvent) -> dict:
        """
        Convert a CanonicalEvent to a DynamoDB item.

        Dates are stored as ISO 8601 strings; unset optional fields are omitted.
        """
        item = {
            'slug': event.slug,
            'name': event.name,
            'description': event.description,
            'location': event.location,
            'country': event.country,
            'is_online': event.is_online,
            'website': event.website,
            'logo_url': event.logo_url,
            'terms_url': event.terms_url,
            'contact_email': event.contact_email,
            'tags': event.tags,
            'cfp_status': event.cfp_status,
            'is_paid': event.is_paid,
            'organizer_ids': [int(user_id) for user_id in event.organizer_ids],
        }
        for name in _DATE_FIELDS:
            value = getattr(event, name)
            if value is not None:
                item[name] = value.isoformat()
        if event.created_by_id is not None:
            item['created_by_id'] = int(event.created_by_id)
        return item

    def _item_to_event(self, item: dict) -> CanonicalEvent:
        """
        Convert a DynamoDB item to a CanonicalEvent.

        Raises:
            EventStoreError: If the item is missing required attributes
        """
        try:
            dates = {
                name: datetime.fromisoformat(item[name])
                for name in _DATE_FIELDS if item.get(name)
            }
            created_by = item.get('created_by_id')
            return CanonicalEvent(
                slug=item['slug'],
                name=item['name'],
                start_date=dates['start_date'],
                end_date=dates['end_date'],
                description=item.get('description', ''),
                location=item.get('location', ''),
                country=item.get('country', ''),
                is_online=bool(item.get('is_online', False)),
                website=item.get('website', ''),
                logo_url=item.get('logo_url', ''),
                terms_url=item.get('terms_url', ''),
                contact_email=item.get('contact_email', ''),
                tags=item.get('tags', ''),
                cfp_status=item.get('cfp_status', ''),
                cfp_open_at=dates.get('cfp_open_at'),
                cfp_close_at=dates.get('cfp_close_at'),
                is_paid=bool(item.get('is_paid', False)),
                created_by_id=int(created_by) if created_by is not None else None,
                organizer_ids=[int(v) for v in item.get('organizer_ids', [])],
                event_id=item['slug'],
            )
        except (KeyError, ValueError) as e:
            raise EventStoreError(
                f"malformed event item {item.get('slug')!r}: {e}"
            ) from e
