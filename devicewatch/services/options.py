"""Persistent option storage backed by the ``options`` table.

``get_or_create`` is the only write path: it is a no-op when the key already
exists, so concurrent first requests converge on a single stored value.
"""
import logging
from typing import Any, Callable, Optional, Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from devicewatch.models.option import Option

logger = logging.getLogger("devicewatch.options")

INSTALLATION_SECRET = "installation_secret"
INSTALLED_TIME = "installed_time"


class OptionStore:
    """Create-if-absent key/value store bound to one database session."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        option = self.db.query(Option).filter(Option.key == key).first()
        return option.value if option is not None else default

    def get_or_create(self, key: str, default: Union[Any, Callable[[], Any]]) -> str:
        """Return the stored value for ``key``, persisting ``default`` if absent.

        ``default`` may be a zero-argument callable so expensive values (random
        secrets) are only generated when the row really has to be created.
        """
        existing = self.get(key)
        if existing is not None:
            return existing

        value = str(default() if callable(default) else default)
        self.db.add(Option(key=key, value=value))
        try:
            self.db.commit()
            logger.info(f"[options] provisioned option key={key}")
            return value
        except IntegrityError:
            # Another request inserted the row first; theirs wins
            self.db.rollback()
            logger.info(f"[options] option key={key} created concurrently; re-reading")
            winner = self.get(key)
            if winner is None:
                raise
            return winner


def provision_installed_time(db: Session, now: int) -> int:
    """Record the first activation instant (startup hook)."""
    return int(OptionStore(db).get_or_create(INSTALLED_TIME, now))
