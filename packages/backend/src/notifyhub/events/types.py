"""Event type constants and the priority table.

Learn: Centralizing event types prevents typos and makes it easy to
discover every event the pipeline understands. Priorities are a fixed
table — lower number = picked up sooner by the workers.
"""

from enum import Enum


class EventType(str, Enum):
    """Domain event / dispatch job types."""

    FOLLOW = "FOLLOW"
    POST = "POST"
    BULK_POST = "BULK_POST"  # job-level fan-out marker, never stored
    LIKE = "LIKE"
    COMMENT = "COMMENT"


# Types a stored Notification may carry. BULK_POST materializes as POST.
NOTIFICATION_TYPES = frozenset({"FOLLOW", "POST", "LIKE", "COMMENT"})

PRIORITIES: dict[str, int] = {
    EventType.FOLLOW.value: 1,
    EventType.COMMENT.value: 1,
    EventType.POST.value: 2,
    EventType.LIKE.value: 3,
}
DEFAULT_PRIORITY = 5


def type_name(event_type: "EventType | str") -> str:
    """Plain string name for an EventType member or a raw type string."""
    if isinstance(event_type, EventType):
        return event_type.value
    return event_type


def priority_for(event_type: "EventType | str") -> int:
    """Priority class for an event type; unknown types (and BULK_POST) get 5."""
    return PRIORITIES.get(type_name(event_type), DEFAULT_PRIORITY)
