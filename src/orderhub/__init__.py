"""OrderHub — order management with live update broadcast.

A GraphQL API over orders, items and users, JWT authentication, and a
separate real-time hub that fans order changes out to connected clients.
"""

__version__ = "0.1.0"
