"""DynamoDB store for tasks."""
import logging
from typing import Dict, List, Optional

from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from processor.models import Task
from storage.session import StorageSession, from_dynamo

logger = logging.getLogger(__name__)


class TaskStore:
    """Tasks table keyed by user_id (hash) and task_id (range)."""

    def __init__(self, session: StorageSession):
        self.table = session.table('tasks')

    def put(self, task: Task) -> Task:
        self.table.put_item(Item=self._task_to_item(task))
        return task

    def get(self, user_id: str, task_id: str) -> Optional[Task]:
        response = self.table.get_item(Key={'user_id': user_id, 'task_id': task_id})
        item = response.get('Item')
        return self._item_to_task(item) if item else None

    def list_for_user(self, user_id: str) -> List[Task]:
        condition = Key('user_id').eq(user_id)
        try:
            response = self.table.query(KeyConditionExpression=condition)
            items = response.get('Items', [])

            while 'LastEvaluatedKey' in response:
                response = self.table.query(
                    KeyConditionExpression=condition,
                    ExclusiveStartKey=response['LastEvaluatedKey']
                )
                items.extend(response.get('Items', []))

        except ClientError as e:
            logger.error(f"Error querying tasks table: {e}")
            raise

        return [self._item_to_task(item) for item in items]

    def by_source(self, user_id: str, source_provider: str) -> Dict[str, Task]:
        """Tasks imported from a provider, keyed by their external id."""
        return {
            task.source_assignment_id: task
            for task in self.list_for_user(user_id)
            if task.source_provider == source_provider and task.source_assignment_id
        }

    def set_completion(self, user_id: str, task_id: str, status: str,
                       completed_at: Optional[str]) -> None:
        """
        Persist a completion status change.

        Raises:
            ClientError: If the write fails or the task does not exist
        """
        self.table.update_item(
            Key={'user_id': user_id, 'task_id': task_id},
            UpdateExpression='SET completion_status = :status, completed_at = :completed_at',
            ConditionExpression='attribute_exists(task_id)',
            ExpressionAttributeValues={
                ':status': status,
                ':completed_at': completed_at,
            }
        )

    def delete(self, user_id: str, task_id: str) -> None:
        self.table.delete_item(Key={'user_id': user_id, 'task_id': task_id})

    def _task_to_item(self, task: Task) -> dict:
        item = {
            'user_id': task.user_id,
            'task_id': task.task_id,
            'title': task.title,
            'priority_score': task.priority_score,
            'completion_status': task.completion_status,
            'source_provider': task.source_provider,
        }
        for name in ('due_date', 'description', 'course_name', 'completed_at',
                     'source_assignment_id', 'event_type', 'created_at'):
            value = getattr(task, name)
            if value is not None:
                item[name] = value
        return item

    def _item_to_task(self, item: dict) -> Task:
        item = from_dynamo(item)
        return Task(
            task_id=item['task_id'],
            user_id=item['user_id'],
            title=item['title'],
            due_date=item.get('due_date'),
            priority_score=int(item.get('priority_score', 0)),
            completion_status=item.get('completion_status', 'pending'),
            description=item.get('description'),
            course_name=item.get('course_name'),
            completed_at=item.get('completed_at'),
            source_provider=item.get('source_provider', 'manual'),
            source_assignment_id=item.get('source_assignment_id'),
            event_type=item.get('event_type'),
            created_at=item.get('created_at'),
        )
