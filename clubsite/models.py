"""Domain records persisted in the flat-file collections."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional

from .errors import Conflict


class Role(str, Enum):
    """Access level carried by a credential."""

    MEMBER = "member"
    BEARER = "bearer"

    @classmethod
    def normalise(cls, value: object) -> "Role":
        """Anything other than exactly ``bearer`` is treated as a plain member."""

        if isinstance(value, Role):
            return value
        return cls.BEARER if str(value or "") == cls.BEARER.value else cls.MEMBER


@dataclass
class User:
    """A registered account. Accounts without a password hash accept any password."""

    email: str
    role: Role
    password_hash: Optional[str] = None
    name: str = ""

    @staticmethod
    def from_dict(data: Mapping[str, Any], default_role: Role) -> "User":
        hashed = data.get("passwordHash", data.get("password"))
        return User(
            email=str(data["email"]),
            role=Role.normalise(data.get("role", default_role.value)),
            password_hash=str(hashed) if hashed is not None else None,
            name=str(data.get("name") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"email": self.email, "role": self.role.value}
        if self.password_hash is not None:
            payload["passwordHash"] = self.password_hash
        if self.name:
            payload["name"] = self.name
        return payload


class UserDirectory:
    """The ``users`` document: separate member and bearer registries."""

    def __init__(self, members: List[User], bearers: List[User]) -> None:
        self.members = members
        self.bearers = bearers

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> "UserDirectory":
        members = [User.from_dict(item, Role.MEMBER) for item in document.get("members", [])]
        bearers = [User.from_dict(item, Role.BEARER) for item in document.get("bearers", [])]
        return cls(members, bearers)

    def to_document(self) -> Dict[str, Any]:
        return {
            "members": [user.to_dict() for user in self.members],
            "bearers": [user.to_dict() for user in self.bearers],
        }

    def all(self) -> Iterator[User]:
        yield from self.members
        yield from self.bearers

    def emails(self) -> List[str]:
        return [user.email for user in self.all()]

    def find(self, email: str) -> Optional[User]:
        wanted = email.strip().lower()
        for user in self.all():
            if user.email.lower() == wanted:
                return user
        return None

    def is_bearer(self, email: str) -> bool:
        wanted = email.strip().lower()
        return any(user.email.lower() == wanted for user in self.bearers)

    def add(self, user: User) -> None:
        if self.find(user.email) is not None:
            raise Conflict("User already exists")
        if user.role is Role.BEARER:
            self.bearers.append(user)
        else:
            self.members.append(user)


@dataclass(frozen=True)
class Photo:
    name: str
    url: str

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "url": self.url}


@dataclass
class Event:
    id: int
    title: str
    date: str
    venue: str
    created_by: str
    photos: List[Photo] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "date": self.date,
            "venue": self.venue,
            "photos": [photo.to_dict() for photo in self.photos],
            "createdBy": self.created_by,
        }


@dataclass
class TeamMember:
    id: int
    name: str
    position: str
    department: str = ""
    email: str = ""

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "TeamMember":
        return TeamMember(
            id=int(data["id"]),
            name=str(data.get("name", "")),
            position=str(data.get("position", "")),
            department=str(data.get("department", "")),
            email=str(data.get("email", "")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "position": self.position,
            "department": self.department,
            "email": self.email,
        }


@dataclass
class Achievement:
    id: int
    title: str
    created_by: str
    created_at: str
    description: str = ""
    link: str = ""
    image_url: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "link": self.link,
            "imageUrl": self.image_url,
            "createdBy": self.created_by,
            "createdAt": self.created_at,
        }


__all__ = [
    "Achievement",
    "Event",
    "Photo",
    "Role",
    "TeamMember",
    "User",
    "UserDirectory",
]
