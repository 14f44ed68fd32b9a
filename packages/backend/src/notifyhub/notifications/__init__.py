"""Notification records — materialization (write path) and the store interface."""
