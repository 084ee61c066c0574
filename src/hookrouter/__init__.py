"""GitHub webhook router.

Receives GitHub webhook deliveries, authenticates them with the shared
HMAC secret, and dispatches each to the handler registered for its event
type.
"""

__version__ = "1.0.0"
