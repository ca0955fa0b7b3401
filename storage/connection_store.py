"""DynamoDB store for calendar connections."""
import hashlib
import logging
from datetime import datetime, timezone
from typing import List, Optional

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

from processor.models import CalendarConnection
from processor.timezones import to_utc_iso
from storage.session import StorageSession

logger = logging.getLogger(__name__)


def generate_connection_id(user_id: str, provider: str) -> str:
    """
    Derive the connection id for a (user, provider) pairing.

    The id is deterministic, so saving a second connection for the same
    pairing overwrites the first instead of creating a duplicate.
    """
    composite = f"{user_id}|{provider}"
    return hashlib.sha256(composite.encode('utf-8')).hexdigest()[:32]


class ConnectionStore:
    """Calendar connections table keyed by connection_id."""

    def __init__(self, session: StorageSession):
        self.table = session.table('connections')

    def save(self, connection: CalendarConnection) -> CalendarConnection:
        self.table.put_item(Item=self._connection_to_item(connection))
        return connection

    def create(self, user_id: str, provider: str,
               sync_settings: Optional[dict] = None) -> CalendarConnection:
        connection = CalendarConnection(
            connection_id=generate_connection_id(user_id, provider),
            user_id=user_id,
            provider=provider,
            sync_settings=dict(sync_settings or {}),
        )
        return self.save(connection)

    def get(self, connection_id: str,
            provider: Optional[str] = None) -> Optional[CalendarConnection]:
        """
        Load a connection, optionally requiring a provider.

        Returns:
            CalendarConnection or None if missing or for another provider
        """
        response = self.table.get_item(Key={'connection_id': connection_id})
        item = response.get('Item')
        if not item:
            return None
        connection = self._item_to_connection(item)
        if provider and connection.provider != provider:
            return None
        return connection

    def list_active(self, provider: str) -> List[CalendarConnection]:
        """
        Scan for every active connection of one provider.

        Args:
            provider: Provider name (e.g., 'canvas')

        Returns:
            List of CalendarConnection objects
        """
        condition = Attr('provider').eq(provider) & Attr('is_active').eq(True)
        try:
            response = self.table.scan(FilterExpression=condition)
            items = response.get('Items', [])

            while 'LastEvaluatedKey' in response:
                response = self.table.scan(
                    FilterExpression=condition,
                    ExclusiveStartKey=response['LastEvaluatedKey']
                )
                items.extend(response.get('Items', []))

        except ClientError as e:
            logger.error(f"Error scanning connections table: {e}")
            raise

        return [self._item_to_connection(item) for item in items]

    def mark_synced(self, connection_id: str,
                    synced_at: Optional[datetime] = None) -> str:
        timestamp = to_utc_iso(synced_at or datetime.now(timezone.utc))
        self.table.update_item(
            Key={'connection_id': connection_id},
            UpdateExpression='SET last_synced_at = :ts, updated_at = :ts',
            ExpressionAttributeValues={':ts': timestamp}
        )
        return timestamp

    def update_sync_settings(self, connection_id: str, **settings: str) -> None:
        """Merge individual keys into a connection's sync_settings map."""
        names = {}
        values = {}
        assignments = []
        for index, (key, value) in enumerate(settings.items()):
            names[f"#k{index}"] = key
            values[f":v{index}"] = value
            assignments.append(f"sync_settings.#k{index} = :v{index}")

        if not assignments:
            return
        self.table.update_item(
            Key={'connection_id': connection_id},
            UpdateExpression='SET ' + ', '.join(assignments),
            ExpressionAttributeNames=names,
            ExpressionAttributeValues=values
        )

    def _connection_to_item(self, connection: CalendarConnection) -> dict:
        item = {
            'connection_id': connection.connection_id,
            'user_id': connection.user_id,
            'provider': connection.provider,
            'is_active': connection.is_active,
            'sync_settings': dict(connection.sync_settings),
        }
        if connection.last_synced_at:
            item['last_synced_at'] = connection.last_synced_at
        return item

    def _item_to_connection(self, item: dict) -> CalendarConnection:
        return CalendarConnection(
            connection_id=item['connection_id'],
            user_id=item['user_id'],
            provider=item['provider'],
            is_active=bool(item.get('is_active', True)),
            sync_settings=dict(item.get('sync_settings') or {}),
            last_synced_at=item.get('last_synced_at'),
        )
