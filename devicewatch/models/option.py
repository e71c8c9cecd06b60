"""Installation-wide key/value options (secret salt, install timestamp)."""

from sqlalchemy import Column, String, Text, DateTime
from devicewatch.utils.datetime import utc_now
from devicewatch.db import Base


class Option(Base):
    """A named value that survives restarts.

    Rows are written once through ``services.options.get_or_create`` and never
    updated by the service itself.
    """
    __tablename__ = "options"

    key = Column(String(191), primary_key=True)
    value = Column(Text, nullable=False)
    created_at = Column(DateTime, default=utc_now, nullable=False)

    def __repr__(self):
        return f"<Option {self.key}>"
