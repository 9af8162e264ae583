"""
User role and rider status enumerations.
"""

import enum


class UserRole(str, enum.Enum):
    """
    User role enumeration.

    Roles:
        ADMIN: Staff member managing parcels, riders and users
        USER: Sender creating and paying for parcels (default role)
        RIDER: Delivery agent, provisioned when a rider application is activated
    """
    ADMIN = "admin"
    USER = "user"
    RIDER = "rider"


class RiderStatus(str, enum.Enum):
    """
    Rider application status.

    Status flow:
        pending → active | rejected
    """
    PENDING = "pending"
    ACTIVE = "active"
    REJECTED = "rejected"
