from datetime import datetime
from typing import Optional, Tuple, List, TYPE_CHECKING
from app.db.base import Base
from sqlalchemy import TIMESTAMP, Boolean, String, Enum as SQLEnum, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.dialects.postgresql import UUID as PGUUID
import uuid
from app.schemas.user_schemas import UserRole

if TYPE_CHECKING:
    from app.models.patient_model import Patient


class User(Base):
    """Clinic staff account. Each user holds exactly one role."""

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        PGUUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        unique=True,
        index=True,
    )
    username: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        index=True,
        nullable=False,
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    phone: Mapped[Optional[str]] = mapped_column(
        String(20),
        nullable=True,
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        index=True,
        nullable=False,
    )
    password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )
    role: Mapped[UserRole] = mapped_column(
        SQLEnum(
            UserRole,
            name="userrole",
            values_callable=lambda roles: [r.value for r in roles],
        ),
        nullable=False,
        index=True,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        nullable=False,
    )
    is_deleted: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
    last_login_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True),
        nullable=True,
    )

    assigned_patients: Mapped[List["Patient"]] = relationship(
        "Patient",
        foreign_keys="[Patient.assigned_doctor_id]",
        back_populates="assigned_doctor",
    )

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username} role={self.role}>"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def can_login(self) -> Tuple[bool, Optional[str]]:
        """Check if user is allowed to login."""
        if self.is_deleted:
            return False, "User account does not exist"
        if not self.is_active:
            return False, "User account is inactive"
        return True, None

    def has_role(self, *roles: UserRole) -> bool:
        """Check if user holds any of the given roles."""
        return self.role in roles

    def normalize_email(self) -> None:
        """Convert email to lowercase for consistency."""
        if self.email:
            self.email = self.email.lower()
