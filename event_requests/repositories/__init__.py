from event_requests.repositories.jobs import InMemoryJobsRepository, PostgresJobsRepository
from event_requests.repositories.notifications import (
    InMemoryNotificationsRepository,
    PostgresNotificationsRepository,
)
from event_requests.repositories.requests import (
    InMemoryRequestsRepository,
    PendingRequestConflict,
    PostgresRequestsRepository,
)
from event_requests.repositories.resources import (
    BracketRecord,
    EventRecord,
    InMemoryResourceGraph,
    SectionRecord,
    UserRecord,
    VideoRecord,
)

__all__ = [
    "InMemoryJobsRepository",
    "PostgresJobsRepository",
    "InMemoryNotificationsRepository",
    "PostgresNotificationsRepository",
    "InMemoryRequestsRepository",
    "PendingRequestConflict",
    "PostgresRequestsRepository",
    "BracketRecord",
    "EventRecord",
    "InMemoryResourceGraph",
    "SectionRecord",
    "UserRecord",
    "VideoRecord",
]
