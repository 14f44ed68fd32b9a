"""notifyhub — asynchronous notification dispatch service.

Turns domain events (follows, posts, likes, comments) into persisted
per-recipient notifications and pushes them to connected clients in
real time.
"""

__version__ = "0.1.0"
