"""Real-time event vocabulary shared by the WebSocket hub and the session layer.

Kept free of FastAPI concerns so it can be reused by routes and tests.
"""
