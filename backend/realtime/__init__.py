"""
Realtime app for WebSocket delivery of dispatch events.

Key Components:
    - events.py: best-effort publisher (booking:update, booking:assigned, pricing:update, booking:new)
    - connections.py: Redis-backed index of connected drivers for nearest-claim routing
    - tracking.py: tracking:start / tracking:stop / tracking:position for started trips
    - consumers/: WebSocket consumers (driver, passenger, booking)
    - middleware.py: JWT/Cookie authentication for WebSocket connections
"""
