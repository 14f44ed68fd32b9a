"""Handler registry — which event types the workers know how to process.

Learn: A handler takes one dispatch job and either returns (→ ack) or
raises (→ nack + retry). Persistence happens first; the live push is a
side call that can't fail the job.

LIKE and COMMENT are deliberately absent: they have priorities but no
notification template yet, so the pool logs and acks them.
"""

from typing import Any, Awaitable, Callable

from notifyhub.notifications.materializer import NotificationMaterializer
from notifyhub.queue.models import DispatchJob
from notifyhub.realtime.dispatcher import RealtimeDispatcher

Handler = Callable[[DispatchJob], Awaitable[Any]]


def build_handlers(
    materializer: NotificationMaterializer, realtime: RealtimeDispatcher
) -> dict[str, Handler]:
    async def deliver(job: DispatchJob):
        notifications = await materializer.materialize(job)
        realtime.push_many(notifications)
        return notifications

    return {event_type: deliver for event_type in materializer.supported_types}
