"""Task creation, event conversion and optimistic completion toggling."""
import logging
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from botocore.exceptions import ClientError

from processor.models import StoredEvent, Task
from processor.priority import calculate_priority, priority_from_label
from processor.timezones import parse_iso, to_utc_iso
from storage.task_store import TaskStore

logger = logging.getLogger(__name__)

PENDING = 'pending'
COMPLETED = 'completed'


def _now_iso() -> str:
    return to_utc_iso(datetime.now(timezone.utc))


def create_manual_task(user_id: str, title: str, due_date: Optional[str],
                       priority: str = 'none', description: Optional[str] = None,
                       course_name: Optional[str] = None) -> Task:
    """Build a manual task whose priority was picked by the user."""
    return Task(
        task_id=str(uuid.uuid4()),
        user_id=user_id,
        title=title,
        description=description,
        course_name=course_name,
        due_date=due_date,
        priority_score=priority_from_label(priority),
        source_provider='manual',
        created_at=_now_iso(),
    )


def task_from_event(event: StoredEvent, now: Optional[datetime] = None) -> Task:
    """
    Convert a stored calendar event into a pending task.

    The priority is computed once, here; it is not re-evaluated later.
    """
    return Task(
        task_id=str(uuid.uuid4()),
        user_id=event.user_id,
        title=event.title,
        description=event.description,
        due_date=event.start_time,
        priority_score=calculate_priority(
            event.title, event.description, event.start_time, now
        ),
        source_provider=event.source_provider or 'calendar',
        source_assignment_id=event.source_event_id,
        event_type=event.event_type,
        created_at=_now_iso(),
    )


def task_from_google(user_id: str, raw: dict,
                     now: Optional[datetime] = None) -> Task:
    """Convert a Google Tasks resource into a Task."""
    due_date = to_utc_iso(parse_iso(raw['due'])) if raw.get('due') else None
    completed = raw.get('status') == COMPLETED
    return Task(
        task_id=str(uuid.uuid4()),
        user_id=user_id,
        title=raw.get('title') or 'Untitled Task',
        description=raw.get('notes'),
        course_name=raw.get('taskListName'),
        due_date=due_date,
        priority_score=calculate_priority(raw.get('title') or '', raw.get('notes'), due_date, now),
        completion_status=COMPLETED if completed else PENDING,
        completed_at=raw.get('completed') if completed else None,
        source_provider='google',
        source_assignment_id=raw['id'],
        created_at=_now_iso(),
    )


def sync_google_tasks(store: TaskStore, user_id: str, raw_tasks: List[dict],
                      now: Optional[datetime] = None) -> Tuple[int, int]:
    """
    Upsert Google Tasks resources as tasks.

    Existing tasks keep their id and priority score; only the fields
    Google owns are refreshed.

    Args:
        store: Task store
        user_id: Owner of the tasks
        raw_tasks: Resources from GoogleCalendarClient.fetch_all_tasks
        now: Reference time for priority scoring of new tasks

    Returns:
        (synced, errors) counts
    """
    existing = store.by_source(user_id, 'google')
    synced = 0
    errors = 0

    for raw in raw_tasks:
        if not raw.get('id') or not raw.get('title'):
            continue
        incoming = task_from_google(user_id, raw, now)
        current = existing.get(raw['id'])
        if current is not None:
            incoming = replace(
                incoming,
                task_id=current.task_id,
                priority_score=current.priority_score,
                created_at=current.created_at,
            )
        try:
            store.put(incoming)
            synced += 1
        except ClientError as e:
            logger.error(f"Error saving Google task {raw['id']}: {e}")
            errors += 1

    return synced, errors


class ToggleCompletion:
    """Reversible completion transition for one task."""

    def __init__(self, task: Task, clock: Callable[[], str] = _now_iso):
        self.before = task
        new_status = PENDING if task.completion_status == COMPLETED else COMPLETED
        self.after = replace(
            task,
            completion_status=new_status,
            completed_at=clock() if new_status == COMPLETED else None,
        )

    def apply(self, tasks: Dict[str, Task]) -> Task:
        tasks[self.after.task_id] = self.after
        return self.after

    def undo(self, tasks: Dict[str, Task]) -> Task:
        tasks[self.before.task_id] = self.before
        return self.before


class TaskBoard:
    """
    Local view of a user's tasks backed by the task store.

    Mutations are applied locally first and rolled back if the write fails.
    """

    def __init__(self, user_id: str, store: TaskStore):
        self.user_id = user_id
        self.store = store
        self.tasks: Dict[str, Task] = {}

    def load(self) -> List[Task]:
        self.tasks = {task.task_id: task for task in self.store.list_for_user(self.user_id)}
        return self.sorted_tasks()

    def add(self, task: Task) -> Task:
        self.store.put(task)
        self.tasks[task.task_id] = task
        return task

    def convert_event(self, event: StoredEvent, now: Optional[datetime] = None) -> Task:
        return self.add(task_from_event(event, now))

    def toggle_completion(self, task_id: str) -> bool:
        """
        Flip a task between pending and completed.

        The new state is visible locally before the write; if the write
        fails the exact previous state is restored.

        Args:
            task_id: Task to toggle

        Returns:
            True if the change was persisted, False if it was rolled back
        """
        task = self.tasks.get(task_id)
        if task is None:
            raise KeyError(task_id)

        command = ToggleCompletion(task)
        updated = command.apply(self.tasks)
        try:
            self.store.set_completion(
                self.user_id, task_id, updated.completion_status, updated.completed_at
            )
        except ClientError as e:
            logger.error(f"Error updating task {task_id}, rolling back: {e}")
            command.undo(self.tasks)
            return False
        return True

    def delete(self, task_id: str) -> None:
        self.store.delete(self.user_id, task_id)
        self.tasks.pop(task_id, None)

    def sorted_tasks(self) -> List[Task]:
        """Pending first, then higher priority, then earlier due date."""
        def sort_key(task: Task):
            return (
                task.completion_status == COMPLETED,
                -task.priority_score,
                task.due_date or '9999',
            )
        return sorted(self.tasks.values(), key=sort_key)
