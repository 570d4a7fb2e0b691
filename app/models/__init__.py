"""
Nestmate — ORM model registry.

Importing every model here ensures that ``Base.metadata.create_all`` (and any
other tool that inspects ``Base.metadata``) discovers all tables.
"""

from app.models.user import User, RoommateProfile
from app.models.listing import Listing
from app.models.message import Message, Conversation
from app.models.badge import Badge

__all__ = [
    "User",
    "RoommateProfile",
    "Listing",
    "Message",
    "Conversation",
    "Badge",
]
