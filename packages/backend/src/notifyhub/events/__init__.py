"""Domain events — types, routing into dispatch jobs, emit helpers.

Learn: Events flow one way:
1. Application layer → EventService.emit_*()
2. EventRouter.route() → DispatchJob (pure, no I/O)
3. JobQueue.enqueue() → workers pick it up
"""
