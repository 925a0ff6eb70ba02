"""Database base."""

from sqlalchemy.orm import declarative_base
from flowbit.utils.timezone import get_utc_now

Base = declarative_base()


def get_current_timestamp():
    """Get current timestamp in UTC for database defaults."""
    return get_utc_now()
