"""Package marker for the CKD follow-up backend.

Makes the `nephrocare` directory importable so tests and the ASGI entry
point can import nephrocare.* modules.
"""

__all__ = [
    "alert_rules",
    "cache",
    "errors",
    "rate_limit",
    "security",
]
