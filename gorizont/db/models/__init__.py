from gorizont.db.models.appeal import Appeal
from gorizont.db.models.audit import AuditLog
from gorizont.db.models.conversation import Conversation, ConversationParticipant, Message
from gorizont.db.models.dispute import Dispute
from gorizont.db.models.notification import Notification
from gorizont.db.models.order import Order
from gorizont.db.models.product import Product
from gorizont.db.models.review import Review
from gorizont.db.models.user import User

__all__ = [
    "Appeal",
    "AuditLog",
    "Conversation",
    "ConversationParticipant",
    "Dispute",
    "Message",
    "Notification",
    "Order",
    "Product",
    "Review",
    "User",
]
