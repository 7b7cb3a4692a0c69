from sqlalchemy import Column, Integer, String, DateTime, CheckConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from echoscore.database import Base


class User(Base):
    """Platform user: student, teacher or administrator."""

    __tablename__ = "users"

    ROLE_TEACHER = "profesor"
    ROLE_STUDENT = "estudiante"
    ROLE_ADMIN = "admin"

    id = Column(Integer, primary_key=True)
    email = Column(String(255), unique=True, nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    role = Column(String(15), nullable=False, default=ROLE_STUDENT)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    sessions = relationship(
        "Session", back_populates="user", cascade="all, delete-orphan"
    )
    studies = relationship("Study", back_populates="student")

    __table_args__ = (
        CheckConstraint(
            "role IN ('profesor', 'estudiante', 'admin')", name="ck_users_role"
        ),
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def is_admin(self) -> bool:
        return self.role == self.ROLE_ADMIN

    @property
    def is_teacher(self) -> bool:
        return self.role in (self.ROLE_TEACHER, self.ROLE_ADMIN)

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
