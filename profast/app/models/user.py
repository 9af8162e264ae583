"""
User database model.

Identity + role record. `role` is the only attribute the access policy reads.
"""

from sqlalchemy import Column, String, DateTime, Enum
from profast.app.db.session import Base, utcnow
from profast.app.models.enums import UserRole
from profast.app.models.parcel import new_id
from profast.app.models.parcel_enums import enum_values


class User(Base):
    """
    User model.

    Created on first sign-in (role user) or when a rider application is
    activated (role rider, linked back through rider_id).
    """
    __tablename__ = "users"

    id = Column(String(32), primary_key=True, default=new_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)
    photo_url = Column(String(500), nullable=True)

    role = Column(
        Enum(UserRole, name="user_role", values_callable=enum_values),
        default=UserRole.USER,
        nullable=False
    )

    # Rider profile (filled on rider activation)
    phone = Column(String(50), nullable=True)
    vehicle_type = Column(String(50), nullable=True)
    vehicle_number = Column(String(50), nullable=True)
    rider_id = Column(String(32), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    last_login_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role.value}')>"
