"""Authenticated writes: validate, persist, broadcast, then notify by mail."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

import anyio

from .auth import require_role
from .broadcast import BroadcastHub
from .config import DEFAULT_ORG_NAME
from .credentials import Credential
from .errors import BadRequest, NotFound, StoreError
from .mail import MailDispatcher
from .models import Achievement, Event, Photo, Role, TeamMember, User, UserDirectory
from .passwords import generate_temp_password, hash_password
from .store import FlatFileStore
from .uploads import IncomingFile, UploadStorage

logger = logging.getLogger("clubsite.pipeline")

EVENT_CREATED = "event:new"
TEAM_UPDATED = "team:update"
ACHIEVEMENT_CREATED = "ach:new"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _record_id(moment: datetime) -> int:
    # Millisecond timestamps; two records created in the same millisecond share an id.
    return int(moment.timestamp() * 1000)


def _iso(moment: datetime) -> str:
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _clean(value: Optional[str]) -> str:
    return value.strip() if isinstance(value, str) else ""


def _require(fields: Dict[str, Optional[str]], message: str = "Missing fields") -> Dict[str, str]:
    cleaned = {key: _clean(value) for key, value in fields.items()}
    if not all(cleaned.values()):
        raise BadRequest(message)
    return cleaned


def _parse_member_id(member_id: Union[int, str]) -> int:
    try:
        return int(str(member_id).strip())
    except ValueError:
        raise NotFound("Not found") from None


def _find_member(team: Sequence[Dict[str, Any]], member_id: int) -> int:
    for index, entry in enumerate(team):
        try:
            if int(entry.get("id")) == member_id:
                return index
        except (TypeError, ValueError):
            continue
    raise NotFound("Not found")


class MutationPipeline:
    """Every write the site supports, each restricted to bearers.

    Each mutation reads the whole collection, changes it, and writes it back.
    Another request may run between the read and the write.
    """

    def __init__(
        self,
        store: FlatFileStore,
        hub: BroadcastHub,
        mail: MailDispatcher,
        uploads: UploadStorage,
        *,
        org_name: str = DEFAULT_ORG_NAME,
        base_url: str = "",
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._store = store
        self._hub = hub
        self._mail = mail
        self._uploads = uploads
        self._org_name = org_name
        self._base_url = base_url.rstrip("/")
        self._clock = clock or _utcnow

    async def _load(self, collection: str) -> Any:
        return await anyio.to_thread.run_sync(self._store.load, collection)

    async def _save(self, collection: str, document: Any) -> None:
        await anyio.to_thread.run_sync(self._store.save, collection, document)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def list_events(self) -> List[Dict[str, Any]]:
        return await self._load("events")

    async def list_team(self) -> List[Dict[str, Any]]:
        return await self._load("team")

    async def list_achievements(self) -> List[Dict[str, Any]]:
        return await self._load("achievements")

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------
    async def create_event(
        self,
        actor: Credential,
        *,
        title: Optional[str],
        date: Optional[str],
        venue: Optional[str],
        photos: Iterable[IncomingFile] = (),
    ) -> Dict[str, Any]:
        require_role(actor, Role.BEARER)
        fields = _require({"title": title, "date": date, "venue": venue})

        stored_photos = await self._uploads.save(photos)
        event = Event(
            id=_record_id(self._clock()),
            title=fields["title"],
            date=fields["date"],
            venue=fields["venue"],
            photos=stored_photos,
            created_by=actor.email,
        )
        record = event.to_dict()

        try:
            events = await self._load("events")
            events.append(record)
            await self._save("events", events)
        except StoreError:
            await self._uploads.discard(stored_photos)
            raise
        logger.info("%s created event %s (%s)", actor.email, event.id, event.title)

        self._hub.publish(EVENT_CREATED, record)

        try:
            directory = UserDirectory.from_document(await self._load("users"))
        except StoreError as exc:
            logger.warning("Skipping event mail, user registry unavailable: %s", exc)
            return record

        recipients = ",".join(directory.emails())
        if recipients:
            photo_urls = ", ".join(photo.url for photo in stored_photos)
            self._mail.dispatch(
                recipients,
                f"[{self._org_name}] New Event: {event.title}",
                f"Title: {event.title}\nDate: {event.date}\nVenue: {event.venue}\nPhotos: {photo_urls}",
            )
        return record

    # ------------------------------------------------------------------
    # Team roster
    # ------------------------------------------------------------------
    async def create_team_member(
        self,
        actor: Credential,
        *,
        name: Optional[str],
        position: Optional[str],
        department: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Dict[str, Any]:
        require_role(actor, Role.BEARER)
        fields = _require({"name": name, "position": position})

        member = TeamMember(
            id=_record_id(self._clock()),
            name=fields["name"],
            position=fields["position"],
            department=_clean(department),
            email=_clean(email),
        )
        record = member.to_dict()

        team = await self._load("team")
        team.append(record)
        await self._save("team", team)
        logger.info("%s added team member %s (%s)", actor.email, member.id, member.name)

        self._hub.publish(TEAM_UPDATED, record)
        return record

    async def update_team_member(
        self,
        actor: Credential,
        member_id: Union[int, str],
        *,
        name: Optional[str] = None,
        position: Optional[str] = None,
        department: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Dict[str, Any]:
        require_role(actor, Role.BEARER)
        member_id = _parse_member_id(member_id)

        team = await self._load("team")
        index = _find_member(team, member_id)

        changes = {
            key: _clean(value)
            for key, value in {
                "name": name,
                "position": position,
                "department": department,
                "email": email,
            }.items()
            if _clean(value)
        }
        team[index] = {**team[index], **changes}
        await self._save("team", team)
        logger.info("%s updated team member %s (%s)", actor.email, member_id, ", ".join(sorted(changes)) or "no changes")

        self._hub.publish(TEAM_UPDATED, team[index])
        return team[index]

    async def delete_team_member(self, actor: Credential, member_id: Union[int, str]) -> Dict[str, Any]:
        require_role(actor, Role.BEARER)
        member_id = _parse_member_id(member_id)

        team = await self._load("team")
        index = _find_member(team, member_id)
        removed = team.pop(index)
        await self._save("team", team)
        logger.info("%s removed team member %s", actor.email, member_id)

        self._hub.publish(TEAM_UPDATED, {"removedId": member_id})
        return removed

    # ------------------------------------------------------------------
    # Onboarding
    # ------------------------------------------------------------------
    async def onboard_member(
        self,
        actor: Credential,
        *,
        email: Optional[str],
        name: Optional[str] = None,
        role: Optional[str] = None,
    ) -> tuple[Dict[str, Any], str]:
        """Register a new account and return it with its one-time password."""

        require_role(actor, Role.BEARER)
        address = _require({"email": email}, "email required")["email"]
        display_name = _clean(name)

        directory = UserDirectory.from_document(await self._load("users"))
        temp_password = generate_temp_password()
        user = User(
            email=address,
            role=Role.normalise(role),
            password_hash=hash_password(temp_password),
            name=display_name,
        )
        directory.add(user)
        await self._save("users", directory.to_document())
        logger.info("%s onboarded %s as %s", actor.email, user.email, user.role.value)

        greeting = f"Hello {display_name}," if display_name else "Hello,"
        self._mail.dispatch(
            user.email,
            f"[{self._org_name}] Your account credentials",
            (
                f"{greeting}\n\n"
                f"Your access to the {self._org_name} website has been created.\n\n"
                f"Email: {user.email}\n"
                f"Temporary Password: {temp_password}\n"
                f"Role: {user.role.value}\n\n"
                f"Login at {self._base_url}/login.html and change your password soon.\n"
            ),
        )
        return {"email": user.email, "role": user.role.value}, temp_password

    # ------------------------------------------------------------------
    # Achievements
    # ------------------------------------------------------------------
    async def create_achievement(
        self,
        actor: Credential,
        *,
        title: Optional[str],
        description: Optional[str] = None,
        link: Optional[str] = None,
        image: Optional[IncomingFile] = None,
    ) -> Dict[str, Any]:
        require_role(actor, Role.BEARER)
        fields = _require({"title": title}, "title required")

        image_url = ""
        stored: List[Photo] = []
        if image is not None:
            stored = await self._uploads.save([image])
            if stored:
                image_url = stored[0].url

        moment = self._clock()
        achievement = Achievement(
            id=_record_id(moment),
            title=fields["title"],
            description=_clean(description),
            link=_clean(link),
            image_url=image_url,
            created_by=actor.email,
            created_at=_iso(moment),
        )
        record = achievement.to_dict()

        try:
            achievements = await self._load("achievements")
            achievements.append(record)
            await self._save("achievements", achievements)
        except StoreError:
            await self._uploads.discard(stored)
            raise
        logger.info("%s posted achievement %s (%s)", actor.email, achievement.id, achievement.title)

        self._hub.publish(ACHIEVEMENT_CREATED, record)
        return record


__all__ = [
    "ACHIEVEMENT_CREATED",
    "EVENT_CREATED",
    "MutationPipeline",
    "TEAM_UPDATED",
]
