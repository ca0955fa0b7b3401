"""DynamoDB store for synced calendar events."""
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

from boto3.dynamodb.conditions import Key
from boto3.dynamodb.types import TypeSerializer
from botocore.exceptions import ClientError

from processor.models import CalendarEvent, StoredEvent, SyncPlan, SyncResult, event_key
from processor.timezones import to_utc_iso
from storage.session import StorageSession

logger = logging.getLogger(__name__)


class EventStore:
    """
    Events table keyed by user_id (hash) and event_key (range).

    event_key is "<provider>#<source_event_id>", so a user can hold at most
    one row per provider and external id.
    """

    BATCH_SIZE = 25  # DynamoDB batch operation limit
    TRANSACTION_SIZE = 100  # TransactWriteItems limit

    def __init__(self, session: StorageSession):
        self.session = session
        self.table = session.table('events')
        self._serializer = TypeSerializer()

    def get_events(self, user_id: str, source_provider: str) -> Dict[str, StoredEvent]:
        """
        Load every stored event for a (user, provider).

        Args:
            user_id: Owner of the events
            source_provider: Provider name (e.g., 'canvas')

        Returns:
            Dictionary mapping source_event_id to StoredEvent
        """
        condition = (
            Key('user_id').eq(user_id) &
            Key('event_key').begins_with(f"{source_provider}#")
        )
        events = {}

        try:
            response = self.table.query(KeyConditionExpression=condition)
            items = response.get('Items', [])

            while 'LastEvaluatedKey' in response:
                response = self.table.query(
                    KeyConditionExpression=condition,
                    ExclusiveStartKey=response['LastEvaluatedKey']
                )
                items.extend(response.get('Items', []))

            for item in items:
                event = self._item_to_stored_event(item)
                if event:
                    events[event.source_event_id] = event

            logger.info(
                f"Retrieved {len(events)} {source_provider} events for user {user_id}"
            )
            return events

        except ClientError as e:
            logger.error(f"Error querying events table: {e}")
            raise

    def apply_plan(self, user_id: str, plan: SyncPlan,
                   source_provider: str, atomic: bool = False) -> SyncResult:
        """
        Write a sync plan for one (user, provider).

        The default mode issues a bulk insert, a per-record update loop and
        a bulk delete as independent steps; failures are counted and the
        remaining steps still run. Atomic mode sends everything through
        TransactWriteItems in chunks of 100 so each chunk applies fully or
        not at all.

        Args:
            user_id: Owner of the events
            plan: Output of plan_sync
            source_provider: Provider the plan belongs to
            atomic: Use transactional writes

        Returns:
            SyncResult with counts and error messages
        """
        if atomic:
            return self._apply_transactional(user_id, plan, source_provider)

        result = SyncResult()
        now = self._now()

        result.added = self.batch_insert_events(
            user_id, plan.to_insert, now, result.errors
        )

        for event in plan.to_update:
            try:
                self.update_event(user_id, event, now)
                result.updated += 1
            except ClientError as e:
                message = f"Error updating event {event.source_event_id}: {e}"
                logger.error(message)
                result.errors.append(message)

        result.deleted = self.batch_delete_events(
            user_id, source_provider, plan.to_delete, result.errors
        )

        logger.info(
            f"Sync complete: {result.added} added, {result.updated} updated, "
            f"{result.deleted} deleted, {result.error_count} errors"
        )
        return result

    def batch_insert_events(self, user_id: str, events: List[CalendarEvent],
                            now: Optional[str] = None,
                            errors: Optional[List[str]] = None) -> int:
        """
        Insert events in batches of 25 items.

        Args:
            user_id: Owner of the events
            events: Events to insert
            now: Timestamp for created_at/updated_at
            errors: List collecting error messages for failed batches

        Returns:
            Count of successfully written events
        """
        if not events:
            return 0

        now = now or self._now()
        logger.info(f"Writing {len(events)} events to DynamoDB")
        success_count = 0

        for i in range(0, len(events), self.BATCH_SIZE):
            batch = events[i:i + self.BATCH_SIZE]

            try:
                with self.table.batch_writer() as writer:
                    for event in batch:
                        writer.put_item(Item=self._event_to_item(user_id, event, now, now))
                success_count += len(batch)

            except ClientError as e:
                message = f"Error writing batch {i // self.BATCH_SIZE + 1}: {e}"
                logger.error(message)
                if errors is not None:
                    errors.append(message)
                continue

        logger.info(f"Successfully wrote {success_count} events")
        return success_count

    def update_event(self, user_id: str, event: CalendarEvent,
                     now: Optional[str] = None) -> None:
        """Overwrite the mutable fields of one stored event."""
        now = now or self._now()
        self.table.update_item(
            Key={
                'user_id': user_id,
                'event_key': event_key(event.source_provider, event.source_event_id),
            },
            UpdateExpression=(
                'SET title = :title, description = :description, '
                'start_time = :start_time, end_time = :end_time, '
                '#location = :location, is_all_day = :is_all_day, '
                'updated_at = :updated_at'
            ),
            ExpressionAttributeNames={'#location': 'location'},
            ExpressionAttributeValues={
                ':title': event.title,
                ':description': event.description,
                ':start_time': to_utc_iso(event.start_time),
                ':end_time': to_utc_iso(event.end_time),
                ':location': event.location,
                ':is_all_day': event.is_all_day,
                ':updated_at': now,
            }
        )

    def batch_delete_events(self, user_id: str, source_provider: str,
                            source_event_ids: List[str],
                            errors: Optional[List[str]] = None) -> int:
        """
        Delete events in batches of 25 items.

        Args:
            user_id: Owner of the events
            source_provider: Provider the ids belong to
            source_event_ids: External ids to delete
            errors: List collecting error messages for failed batches

        Returns:
            Count of successfully deleted events
        """
        if not source_event_ids:
            return 0

        logger.info(f"Deleting {len(source_event_ids)} events from DynamoDB")
        success_count = 0

        for i in range(0, len(source_event_ids), self.BATCH_SIZE):
            batch = source_event_ids[i:i + self.BATCH_SIZE]

            try:
                with self.table.batch_writer() as writer:
                    for source_event_id in batch:
                        writer.delete_item(Key={
                            'user_id': user_id,
                            'event_key': event_key(source_provider, source_event_id),
                        })
                success_count += len(batch)

            except ClientError as e:
                message = f"Error deleting batch {i // self.BATCH_SIZE + 1}: {e}"
                logger.error(message)
                if errors is not None:
                    errors.append(message)
                continue

        logger.info(f"Successfully deleted {success_count} events")
        return success_count

    def _apply_transactional(self, user_id: str, plan: SyncPlan,
                             source_provider: str) -> SyncResult:
        now = self._now()
        table_name = self.table.name
        operations = []

        for event in plan.to_insert:
            item = self._event_to_item(user_id, event, now, now)
            operations.append(('added', {'Put': {
                'TableName': table_name, 'Item': self._serialize(item)
            }}))
        for event in plan.to_update:
            stored = self._event_to_item(user_id, event, None, now)
            stored.pop('created_at')
            operations.append(('updated', {'Update': {
                'TableName': table_name,
                'Key': self._serialize({
                    'user_id': user_id,
                    'event_key': stored['event_key'],
                }),
                'UpdateExpression': (
                    'SET title = :title, description = :description, '
                    'start_time = :start_time, end_time = :end_time, '
                    '#location = :location, is_all_day = :is_all_day, '
                    'updated_at = :updated_at'
                ),
                'ExpressionAttributeNames': {'#location': 'location'},
                'ExpressionAttributeValues': self._serialize({
                    ':title': stored['title'],
                    ':description': stored.get('description'),
                    ':start_time': stored['start_time'],
                    ':end_time': stored['end_time'],
                    ':location': stored.get('location'),
                    ':is_all_day': stored['is_all_day'],
                    ':updated_at': now,
                }),
            }}))
        for source_event_id in plan.to_delete:
            operations.append(('deleted', {'Delete': {
                'TableName': table_name,
                'Key': self._serialize({
                    'user_id': user_id,
                    'event_key': event_key(source_provider, source_event_id),
                }),
            }}))

        result = SyncResult()
        for i in range(0, len(operations), self.TRANSACTION_SIZE):
            chunk = operations[i:i + self.TRANSACTION_SIZE]
            try:
                self.session.client.transact_write_items(
                    TransactItems=[operation for _, operation in chunk]
                )
            except ClientError as e:
                message = (
                    f"Transaction {i // self.TRANSACTION_SIZE + 1} rolled back "
                    f"({len(chunk)} writes): {e}"
                )
                logger.error(message)
                result.errors.append(message)
                continue

            for kind, _ in chunk:
                setattr(result, kind, getattr(result, kind) + 1)

        logger.info(
            f"Transactional sync complete: {result.added} added, "
            f"{result.updated} updated, {result.deleted} deleted"
        )
        return result

    def _serialize(self, values: dict) -> dict:
        return {key: self._serializer.serialize(value) for key, value in values.items()}

    def _event_to_item(self, user_id: str, event: CalendarEvent,
                       created_at: Optional[str], updated_at: str) -> dict:
        """
        Convert CalendarEvent object to DynamoDB item.

        Args:
            user_id: Owner of the event
            event: CalendarEvent object
            created_at: Creation timestamp
            updated_at: Modification timestamp

        Returns:
            DynamoDB item dictionary
        """
        item = {
            'user_id': user_id,
            'event_key': event_key(event.source_provider, event.source_event_id),
            'title': event.title,
            'start_time': to_utc_iso(event.start_time),
            'end_time': to_utc_iso(event.end_time),
            'event_type': event.event_type,
            'source_provider': event.source_provider,
            'source_event_id': event.source_event_id,
            'is_all_day': event.is_all_day,
            'created_at': created_at,
            'updated_at': updated_at,
        }

        # Add optional fields if present
        if event.description:
            item['description'] = event.description
        if event.location:
            item['location'] = event.location

        return item

    def _item_to_stored_event(self, item: dict) -> Optional[StoredEvent]:
        """
        Convert DynamoDB item to StoredEvent object.

        Args:
            item: DynamoDB item dictionary

        Returns:
            StoredEvent object or None if conversion fails
        """
        try:
            return StoredEvent(
                user_id=item['user_id'],
                title=item['title'],
                start_time=item['start_time'],
                end_time=item['end_time'],
                source_provider=item['source_provider'],
                source_event_id=item['source_event_id'],
                event_type=item.get('event_type', 'event'),
                description=item.get('description'),
                location=item.get('location'),
                is_all_day=bool(item.get('is_all_day', False)),
                created_at=item.get('created_at'),
                updated_at=item.get('updated_at'),
            )
        except KeyError as e:
            logger.warning(f"Failed to convert item to StoredEvent: {e}")
            return None

    @staticmethod
    def _now() -> str:
        return to_utc_iso(datetime.now(timezone.utc))
