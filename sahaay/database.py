from __future__ import annotations

import json
import logging
from collections.abc import Iterable, MutableMapping
from pathlib import Path
from typing import Generic, TypeVar

from sahaay import config
from sahaay.models import (
    Incident,
    IncidentDetail,
    Resource,
    ResourceStatus,
    Role,
    User,
)

logger = logging.getLogger(__name__)

K = TypeVar("K")
V = TypeVar("V")


class DuplicatePhoneError(ValueError):
    pass


class InMemoryKeyValueDatabase(Generic[K, V]):
    """
    Simple in-memory key/value database. Iteration follows insertion order.
    """

    def __init__(self) -> None:
        self._store: MutableMapping[K, V] = {}

    def put(self, key: K, value: V) -> None:
        self._store[key] = value

    def get(self, key: K) -> V | None:
        return self._store.get(key)

    def all(self) -> list[V]:
        return list(self._store.values())

    def clear(self) -> None:
        self._store.clear()

    def __len__(self) -> int:
        return len(self._store)


class Database:
    """
    Container for the incident, resource and user collections.

    Methods never await, so each call completes before any other request
    on the event loop touches the store. The ``claim_*`` methods rely on
    that to act as compare-and-swap operations.
    """

    def __init__(self) -> None:
        self.incidents: InMemoryKeyValueDatabase[str, Incident] = (
            InMemoryKeyValueDatabase()
        )
        self.resources: InMemoryKeyValueDatabase[str, Resource] = (
            InMemoryKeyValueDatabase()
        )
        self.users: InMemoryKeyValueDatabase[str, User] = (
            InMemoryKeyValueDatabase()
        )

    # Users

    def add_user(self, user: User) -> None:
        """Insert a user, enforcing phone number uniqueness."""
        existing = self.get_user_by_phone(user.phone)
        if existing is not None and existing.id != user.id:
            raise DuplicatePhoneError(
                f"Phone {user.phone} is already registered"
            )
        self.users.put(user.id, user)

    def get_users_by_role(self, role: str) -> list[User]:
        return [user for user in self.users.all() if user.role == role]

    def get_user_by_phone(self, phone: str) -> User | None:
        for user in self.users.all():
            if user.phone == phone:
                return user
        return None

    def get_volunteer(self, user_id: str) -> User | None:
        """Get a user only if it exists and has the VOLUNTEER role."""
        user = self.users.get(user_id)
        if user is None or user.role != Role.VOLUNTEER:
            return None
        return user

    def claim_volunteer(self, user_id: str) -> bool:
        """Flip a volunteer from available to unavailable. False if not available."""
        volunteer = self.get_volunteer(user_id)
        if volunteer is None or volunteer.volunteer is None:
            return False
        if not volunteer.volunteer.is_available:
            return False
        volunteer.volunteer.is_available = False
        self.users.put(volunteer.id, volunteer)
        return True

    # Resources

    def find_available_resources(
        self, domains: Iterable[str], limit: int | None = None
    ) -> list[Resource]:
        """Available resources in any of ``domains``, in store order."""
        wanted = set(domains)
        matches = [
            resource
            for resource in self.resources.all()
            if resource.status == ResourceStatus.AVAILABLE
            and resource.domain in wanted
        ]
        if limit is not None:
            matches = matches[:limit]
        return matches

    def claim_available_resources(
        self, domains: Iterable[str], limit: int
    ) -> list[Resource]:
        """Select up to ``limit`` available resources and mark them deployed."""
        claimed = self.find_available_resources(domains, limit)
        for resource in claimed:
            resource.status = ResourceStatus.DEPLOYED
            self.resources.put(resource.id, resource)
        return claimed

    def claim_resource(self, resource_id: str) -> Resource | None:
        """Move one resource from Available to Deployed, or return None."""
        resource = self.resources.get(resource_id)
        if resource is None or resource.status != ResourceStatus.AVAILABLE:
            return None
        resource.status = ResourceStatus.DEPLOYED
        self.resources.put(resource.id, resource)
        return resource

    def release_resource(self, resource_id: str) -> Resource | None:
        """Return a deployed resource to Available. None if it was not deployed."""
        resource = self.resources.get(resource_id)
        if resource is None or resource.status != ResourceStatus.DEPLOYED:
            return None
        resource.status = ResourceStatus.AVAILABLE
        self.resources.put(resource.id, resource)
        return resource

    # Incidents

    def list_incidents(self) -> list[Incident]:
        """All incidents, newest first."""
        return sorted(
            self.incidents.all(), key=lambda i: i.created_at, reverse=True
        )

    def populate_incident(self, incident: Incident) -> IncidentDetail:
        """Embed the referenced resources and volunteers, skipping dangling ids."""
        resources = [
            resource
            for resource_id in incident.assigned_resources
            if (resource := self.resources.get(resource_id)) is not None
        ]
        volunteers = [
            user
            for user_id in incident.assigned_volunteers
            if (user := self.users.get(user_id)) is not None
        ]
        data = incident.model_dump(
            exclude={"assigned_resources", "assigned_volunteers"}
        )
        return IncidentDetail(
            **data,
            assigned_resources=resources,
            assigned_volunteers=volunteers,
        )


_db: Database | None = None


def get_db() -> Database:
    """Get the global database instance."""
    global _db
    if _db is None:
        _db = Database()
    return _db


def load_sample_data(
    db: Database | None = None, path: Path | None = None
) -> None:
    """Load sample users and resources from sample_data.json into the database."""
    if db is None:
        db = get_db()
    if path is None:
        path = config.SAMPLE_DATA_PATH

    with open(path) as f:
        data = json.load(f)

    for user_data in data["users"]:
        db.add_user(User(**user_data))

    for resource_data in data["resources"]:
        resource = Resource(**resource_data)
        db.resources.put(resource.id, resource)

    logger.info(
        "Loaded %d users and %d resources from %s",
        len(data["users"]),
        len(data["resources"]),
        path,
    )
