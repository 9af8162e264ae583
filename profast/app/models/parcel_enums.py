"""
Parcel status enumerations.

Logistics status and payment status are independent axes.
"""

import enum


class ParcelStatus(str, enum.Enum):
    """
    Parcel logistics status.

    Usual flow:
        pending → paid → assigned → processing → shipped → in-transit
        → out-for-delivery → delivered
        Any status can move to cancelled.

    The flow is a convention for admins and riders; status updates do not
    enforce it.
    """
    PENDING = "pending"
    PAID = "paid"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    IN_TRANSIT = "in-transit"
    OUT_FOR_DELIVERY = "out-for-delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    ASSIGNED = "assigned"


class PaymentStatus(str, enum.Enum):
    """
    Payment gateway status of a parcel.

    There is no member for `unset`: a parcel that has never been paid stores
    NULL, which the API reports as `paymentStatus: null`. Only these three
    values can be recorded.
    """
    PENDING = "pending"
    PAID = "paid"
    CONFIRMED = "confirmed"


class PaymentSource(str, enum.Enum):
    """Which path wrote a ledger entry."""
    CLIENT = "client"
    WEBHOOK = "webhook"


def enum_values(enum_cls) -> list[str]:
    """Values stored in the database for a str enum."""
    return [member.value for member in enum_cls]
