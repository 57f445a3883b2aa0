from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from radiocheck.db.base import Base
from radiocheck.models.common import TimestampMixin


class ResourceLock(Base, TimestampMixin):
    """Advisory usage counter for a shared compute resource."""

    __tablename__ = "resource_locks"

    resource_id: Mapped[str] = mapped_column(String, primary_key=True)
    count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
