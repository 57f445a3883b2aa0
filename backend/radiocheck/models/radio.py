from __future__ import annotations

from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from radiocheck.db.base import Base
from radiocheck.models.common import TimestampMixin

if TYPE_CHECKING:  # pragma: no cover - typing aid
    from radiocheck.models.verification import Verification


class Radio(Base, TimestampMixin):
    __tablename__ = "radios"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    user_id: Mapped[Optional[str]] = mapped_column(String, index=True)
    # Drive folder the crawler imports from
    drive_folder_id: Mapped[Optional[str]] = mapped_column(String, unique=True)

    verifications: Mapped[List["Verification"]] = relationship(
        "Verification", back_populates="radio", cascade="all, delete-orphan"
    )
