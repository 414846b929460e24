"""Domain models - pure Python dataclasses representing business entities"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

# Values a teacher types when a profile field does not apply
ABSENT_MARKERS = {"", "none", "无", "n/a"}

_LIST_DELIMITERS = re.compile(r"[,，、;；\n]+")


def is_absent(value: Optional[str]) -> bool:
    return value is None or value.strip().lower() in ABSENT_MARKERS


def split_items(value: Optional[str]) -> List[str]:
    """Split a delimited profile field into trimmed items ("none" -> [])"""
    if is_absent(value):
        return []
    return [item.strip() for item in _LIST_DELIMITERS.split(value) if item.strip()]


@dataclass
class User:
    """Registered teacher account"""

    username: str
    password_hash: str
    credits: int


@dataclass
class StudentProfile:
    """Structured description of a student used as generation input"""

    name: str
    role: str = "none"
    incidents: str = "none"
    tags: str = "none"

    @property
    def incident_list(self) -> List[str]:
        return split_items(self.incidents)

    @property
    def tag_list(self) -> List[str]:
        return split_items(self.tags)

    @property
    def has_role(self) -> bool:
        return not is_absent(self.role)


@dataclass
class CommentSection:
    """One generated body sentence and the tag or category it came from"""

    source: str
    text: str


@dataclass
class StudentComment:
    """Generated comment blueprint for a single student"""

    student_name: str
    intro: str
    body: List[CommentSection]
    conclusion: str


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"


@dataclass
class PendingOrder:
    """Credit recharge order awaiting payment"""

    order_id: str
    username: str
    amount: str
    credits_granted: int
    status: OrderStatus = OrderStatus.PENDING
    created_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None


@dataclass
class NotificationAck:
    """Outcome of a verified payment notification"""

    order_id: Optional[str]
    trade_status: str
    credited: bool = False
    credits_granted: int = 0
    new_balance: Optional[int] = None
    notes: List[str] = field(default_factory=list)
