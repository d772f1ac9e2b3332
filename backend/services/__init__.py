"""
Services package - Business logic layer.

This package contains all business logic services that operate on Django models
but are decoupled from the HTTP/WebSocket layer.

Modules:
    - booking_lifecycle: Booking state machine, guards and exceptions
    - matching: Nearest-driver search and booking notification routing
    - identity: Profile lookup against the local mirror and remote identity service
    - wallet: Wallet credit/debit client
"""
