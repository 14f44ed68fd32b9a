"""Real-time infrastructure — Redis pub/sub + WebSocket.

Learn: Notifications flow through two channels:
1. Worker → RealtimeDispatcher → Redis PUBLISH on the recipient's channel
2. Redis SUBSCRIBE → WebSocket → the recipient's open clients

The worker never waits on either; persistence already happened.
"""
