"""
FastAPI dependencies shared by the routers.

  get_db        - one AsyncSession per request (nucash.database)
  get_notifier  - the process-wide Notifier used for e-mail receipts

Tests override both through app.dependency_overrides.
"""

from nucash.services.notification_service import Notifier


_notifier = Notifier()


def get_notifier() -> Notifier:
    """Return the application's Notifier."""
    return _notifier
