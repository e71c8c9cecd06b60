from sqlalchemy import Column, String, DateTime, Enum
import enum
from devicewatch.utils.datetime import utc_now
from devicewatch.db import Base
import uuid

class UserRole(enum.Enum):
    admin = "admin"
    editor = "editor"
    author = "author"
    subscriber = "subscriber"

class User(Base):
    __tablename__ = "users"
    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()), index=True)
    display_name = Column(String, nullable=False)
    login = Column(String, unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    role = Column(Enum(UserRole), nullable=False, default=UserRole.subscriber)
    created_at = Column(DateTime, default=utc_now)

    def to_identity(self):
        """Read-only view handed to the device watcher."""
        from devicewatch.services.device_watch.types import Identity  # local import to avoid cycle

        role = self.role.value if isinstance(self.role, UserRole) else self.role
        return Identity(
            id=self.id,
            display_name=self.display_name,
            login_name=self.login,
            email=self.email,
            role=role,
        )

    def __repr__(self):
        return f"<User {self.login} role={self.role}>"
