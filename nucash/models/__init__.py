"""
SQLAlchemy ORM models package.

All models are imported here so that:
  1. Base.metadata knows every table when create_all runs
  2. Other modules can import from nucash.models directly
"""

from nucash.models.account import Account  # noqa: F401
from nucash.models.transaction import Transaction  # noqa: F401
from nucash.models.route import Route  # noqa: F401
from nucash.models.system_setting import SystemSetting  # noqa: F401
