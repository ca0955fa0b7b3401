"""Data models for calendar sync, tasks and social matching."""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional


def event_key(source_provider: str, source_event_id: str) -> str:
    """Sort key identifying one external event for a user."""
    return f"{source_provider}#{source_event_id}"


@dataclass
class CalendarEvent:
    """Event parsed from a single feed fetch."""
    title: str
    start_time: datetime
    end_time: datetime
    source_provider: str
    source_event_id: str
    event_type: str = 'event'
    description: Optional[str] = None
    location: Optional[str] = None
    is_all_day: bool = False
    used_fallback_date: bool = False


@dataclass
class StoredEvent:
    """Event persisted for a user."""
    user_id: str
    title: str
    start_time: str
    end_time: str
    source_provider: str
    source_event_id: str
    event_type: str
    description: Optional[str]
    location: Optional[str]
    is_all_day: bool
    created_at: str
    updated_at: str

    @property
    def event_key(self) -> str:
        return event_key(self.source_provider, self.source_event_id)


@dataclass
class CalendarConnection:
    """A (user, provider) pairing and its sync configuration."""
    connection_id: str
    user_id: str
    provider: str
    is_active: bool = True
    sync_settings: Dict[str, str] = field(default_factory=dict)
    last_synced_at: Optional[str] = None

    @property
    def feed_url(self) -> Optional[str]:
        return self.sync_settings.get('feed_url')


@dataclass
class Task:
    """User task, created manually or converted from an event."""
    task_id: str
    user_id: str
    title: str
    due_date: Optional[str]
    priority_score: int = 0
    completion_status: str = 'pending'
    description: Optional[str] = None
    course_name: Optional[str] = None
    completed_at: Optional[str] = None
    source_provider: str = 'manual'
    source_assignment_id: Optional[str] = None
    event_type: Optional[str] = None
    created_at: Optional[str] = None


@dataclass
class UserInterests:
    """Onboarding questionnaire answers."""
    music_preference: Optional[str] = None
    music_genres: List[str] = field(default_factory=list)
    year_in_school: Optional[str] = None
    campus_hangout_spots: Optional[List[str]] = None
    clubs_and_events: Optional[List[str]] = None
    passion_outside_school: Optional[str] = None
    onboarding_completed: bool = False


@dataclass
class Profile:
    """Public-facing user profile plus its onboarding interests."""
    user_id: str
    display_name: str
    school: Optional[str] = None
    major: Optional[str] = None
    avatar_url: Optional[str] = None
    account_type: str = 'personal'
    is_public: bool = True
    friend_ids: List[str] = field(default_factory=list)
    interests: Optional[UserInterests] = None
    created_at: Optional[str] = None


@dataclass
class MatchedUser:
    """Suggested connection with its compatibility score."""
    user_id: str
    match_score: float
    display_name: str
    avatar_url: Optional[str]
    school: Optional[str]
    major: Optional[str]
    shared_interests: Dict[str, object]


@dataclass
class SyncPlan:
    """Insert/update/delete sets computed for one (user, provider)."""
    to_insert: List[CalendarEvent] = field(default_factory=list)
    to_update: List[CalendarEvent] = field(default_factory=list)
    to_delete: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.to_insert or self.to_update or self.to_delete)


@dataclass
class SyncResult:
    """Result of sync operation."""
    processed: int = 0
    added: int = 0
    updated: int = 0
    deleted: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)


@dataclass
class Promotion:
    """Paid boost of a post for a bounded time window."""
    post_id: str
    promotion_id: str
    user_id: str
    budget: float
    duration_days: int
    target_impressions: int
    status: str = 'pending'
    payment_status: str = 'pending'
    moderation_status: str = 'pending'
    priority_score: Optional[int] = None
    promotion_config: Dict[str, object] = field(default_factory=dict)
    starts_at: Optional[str] = None
    ends_at: Optional[str] = None
    created_at: Optional[str] = None
