"""Real-time infrastructure — API-side dispatcher + hub-side WebSocket fan-out.

Learn: Order changes flow through two hops:
1. OrderService → NotificationDispatcher → HTTP POST /api/broadcast (dispatcher.py)
2. Hub → ConnectionRegistry → WebSocket clients by group (hub.py, websocket.py)

The API process never holds sockets, and the hub never touches the database.
"""
