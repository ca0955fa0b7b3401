"""Environment-driven configuration for the Lambda handlers."""
import os
from dataclasses import dataclass, field
from typing import Optional

from storage.session import TableNames


def _flag(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class Settings:
    """Runtime settings read from environment variables."""
    log_level: str = 'INFO'
    timeout_seconds: int = 30
    sync_atomic: bool = False
    table_names: TableNames = field(default_factory=TableNames)
    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None

    @classmethod
    def from_env(cls) -> 'Settings':
        defaults = TableNames()
        return cls(
            log_level=os.environ.get('LOG_LEVEL', 'INFO'),
            timeout_seconds=int(os.environ.get('TIMEOUT_SECONDS', '30')),
            sync_atomic=_flag(os.environ.get('SYNC_ATOMIC', 'false')),
            table_names=TableNames(
                events=os.environ.get('EVENTS_TABLE', defaults.events),
                connections=os.environ.get('CONNECTIONS_TABLE', defaults.connections),
                tasks=os.environ.get('TASKS_TABLE', defaults.tasks),
                posts=os.environ.get('POSTS_TABLE', defaults.posts),
                promoted_posts=os.environ.get('PROMOTED_POSTS_TABLE', defaults.promoted_posts),
                profiles=os.environ.get('PROFILES_TABLE', defaults.profiles),
                course_colors=os.environ.get('COURSE_COLORS_TABLE', defaults.course_colors),
            ),
            google_client_id=os.environ.get('GOOGLE_CLIENT_ID'),
            google_client_secret=os.environ.get('GOOGLE_CLIENT_SECRET'),
        )
