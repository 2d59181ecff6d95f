import enum


class UserRole(str, enum.Enum):
    BUYER = "buyer"
    VENDOR = "vendor"
    ADMIN = "admin"


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLATION_REQUESTED = "cancellation_requested"
    CANCELLED = "cancelled"


class PaymentMethod(str, enum.Enum):
    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"


class DisputeStatus(str, enum.Enum):
    OPENED = "opened"
    NEGOTIATING = "negotiating"
    ESCALATED = "escalated"
    RESOLVED_REFUND = "resolved_refund"
    RESOLVED_DISMISSED = "resolved_dismissed"
    CANCELLED = "cancelled"


class DisputeReason(str, enum.Enum):
    NOT_RECEIVED = "not_received"
    NOT_AS_DESCRIBED = "not_as_described"
    DAMAGED = "damaged"
    WRONG_ITEM = "wrong_item"
    OTHER = "other"


class ConversationType(str, enum.Enum):
    PRE_SALES = "pre_sales"
    ORDER_SUPPORT = "order_support"
    DISPUTE = "dispute"


class ReviewStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class NotificationType(str, enum.Enum):
    ORDER_STATUS = "order_status"
    CANCELLATION_REQUESTED = "cancellation_requested"
    CANCELLATION_RESOLVED = "cancellation_resolved"
    DISPUTE_OPENED = "dispute_opened"
    DISPUTE_ESCALATED = "dispute_escalated"
    DISPUTE_RESOLVED = "dispute_resolved"
    APPEAL_UPDATED = "appeal_updated"


class AppealTargetType(str, enum.Enum):
    PRODUCT = "product"
    REVIEW = "review"
    ORDER = "order"
    USER = "user"


class AppealStatus(str, enum.Enum):
    OPEN = "open"
    IN_REVIEW = "in_review"
    RESOLVED = "resolved"
    REJECTED = "rejected"
