"""ORM Models — SQLAlchemy declarative models for all domain entities.

Invariants:
    - All models inherit from Base (db/base.py)
    - Event is the aggregate root for members, pokes and its share token

Design Decisions:
    - One file per entity for locality
    - All models imported here so SQLAlchemy resolves string-based relationship()
      references before any query runs (ADR: standard SQLAlchemy pattern)
"""

from meethalf.models.user import User  # noqa: F401
from meethalf.models.event import Event  # noqa: F401
from meethalf.models.member import Member  # noqa: F401
from meethalf.models.poke_record import PokeRecord  # noqa: F401
from meethalf.models.share_token import ShareToken  # noqa: F401
from meethalf.models.notification import Notification  # noqa: F401
from meethalf.models.friend import Friend, FriendRequest  # noqa: F401
from meethalf.models.event_invitation import EventInvitation  # noqa: F401
