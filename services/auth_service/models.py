"""
User and session data models for the authentication service.
"""

import re
from dataclasses import dataclass, replace
from enum import Enum, IntEnum
from typing import Any, Dict, Optional


@dataclass
class User:
    """User identity and economy record"""
    id: str
    username: str
    avatar: str = ""
    color: str = ""  # avatar background token
    name_color: Optional[str] = None
    credits: int = 0
    token: Optional[str] = None  # absent until authenticated

    def to_dict(self, include_token: bool = True) -> Dict[str, Any]:
        """Wire/cache form (camelCase)"""
        data = {
            "id": self.id,
            "username": self.username,
            "avatar": self.avatar,
            "color": self.color,
            "nameColor": self.name_color,
            "credits": self.credits,
        }
        if include_token and self.token:
            data["token"] = self.token
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'User':
        """Build a user from its wire/cache form"""
        if not isinstance(data, dict):
            raise ValueError("User payload must be an object")
        if not data.get("id") or not data.get("username"):
            raise ValueError("User payload requires id and username")

        return cls(
            id=str(data["id"]),
            username=str(data["username"]),
            avatar=data.get("avatar") or "",
            color=data.get("color") or "",
            name_color=data.get("nameColor"),
            credits=int(data.get("credits") or 0),
            token=data.get("token") or None,
        )

    def with_changes(self, **changes) -> 'User':
        return replace(self, **changes)


# Wire keys accepted in a profile patch, mapped onto dataclass fields
PATCHABLE_FIELDS = {
    "username": "username",
    "avatar": "avatar",
    "color": "color",
    "nameColor": "name_color",
    "name_color": "name_color",
    "credits": "credits",
}


class SessionState(Enum):
    """Lifecycle of the logged-in identity"""
    ABSENT = "absent"
    PENDING_VERIFICATION = "pending_verification"
    AUTHENTICATED = "authenticated"


class PasswordStrength(IntEnum):
    """Registration password score"""
    NONE = 0    # empty or too short
    WEAK = 1
    MEDIUM = 2  # minimum accepted for registration
    STRONG = 3


_LETTERS = re.compile(r"[a-zA-Z]")
_DIGITS = re.compile(r"[0-9]")
_SPECIAL = re.compile(r"[^a-zA-Z0-9]")


def evaluate_password_strength(password: str, min_length: int = 6) -> PasswordStrength:
    """
    Score a candidate password

    Args:
        password: Candidate password
        min_length: Shortest length that scores above NONE

    Returns:
        PasswordStrength score
    """
    if not password or len(password) < min_length:
        return PasswordStrength.NONE

    score = PasswordStrength.WEAK

    if _LETTERS.search(password) and _DIGITS.search(password):
        score = PasswordStrength.MEDIUM

    if score == PasswordStrength.MEDIUM and (len(password) >= 10 or _SPECIAL.search(password)):
        score = PasswordStrength.STRONG

    return score
