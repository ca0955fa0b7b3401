"""Explicit storage session shared by every store in one invocation."""
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

import boto3

logger = logging.getLogger(__name__)


@dataclass
class TableNames:
    """DynamoDB table names, one per record family."""
    events: str = 'campus-events'
    connections: str = 'campus-calendar-connections'
    tasks: str = 'campus-tasks'
    posts: str = 'campus-posts'
    promoted_posts: str = 'campus-promoted-posts'
    profiles: str = 'campus-profiles'
    course_colors: str = 'campus-course-colors'


class StorageSession:
    """
    Owns the boto3 resource for one handler invocation.

    Stores receive the session instead of creating their own clients, so a
    handler controls exactly when the connection pool is opened and closed.
    """

    def __init__(self, table_names: Optional[TableNames] = None,
                 region_name: Optional[str] = None):
        self.table_names = table_names or TableNames()
        self.dynamodb = boto3.resource('dynamodb', region_name=region_name)
        self._closed = False
        logger.info("Opened storage session")

    @property
    def client(self):
        return self.dynamodb.meta.client

    def table(self, family: str):
        """
        Return the Table resource for a record family.

        Args:
            family: Attribute name on TableNames (e.g., 'events')
        """
        if self._closed:
            raise RuntimeError('Storage session is closed')
        return self.dynamodb.Table(getattr(self.table_names, family))

    def close(self) -> None:
        if not self._closed:
            self.client.close()
            self._closed = True
            logger.info("Closed storage session")

    def __enter__(self) -> 'StorageSession':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def to_dynamo(value: Any) -> Any:
    """Convert floats (recursively) to Decimal, as DynamoDB requires."""
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {key: to_dynamo(item) for key, item in value.items()}
    if isinstance(value, list):
        return [to_dynamo(item) for item in value]
    return value


def from_dynamo(value: Any) -> Any:
    """Convert Decimals read from DynamoDB back to int or float."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {key: from_dynamo(item) for key, item in value.items()}
    if isinstance(value, list):
        return [from_dynamo(item) for item in value]
    if isinstance(value, set):
        return [from_dynamo(item) for item in value]
    return value
