"""In-memory identity store with the same contract as the MongoDB one."""

import asyncio
import copy
import uuid
from typing import Any

from blog_auth.auth.exceptions import IdentityAlreadyExistsError
from blog_auth.core.interfaces import IClock, IIdentityStore, IPasswordHasher
from blog_auth.users.model import PROTECTED_FIELDS, Identity, IdentityStatus


class InMemoryIdentityStore(IIdentityStore):
    """Dict-backed identity store guarded by a single asyncio lock."""

    def __init__(self, password_hasher: IPasswordHasher, clock: IClock) -> None:
        self._password_hasher = password_hasher
        self._clock = clock
        self._documents: dict[str, dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    def _to_identity(self, document: dict[str, Any], include_secret: bool) -> Identity:
        document = dict(document)
        if not include_secret:
            document.pop("secret_hash", None)
        return Identity.from_document(document)

    def _match(self, field: str, value: str) -> dict[str, Any] | None:
        for document in self._documents.values():
            if document.get(field) == value:
                return document
        return None

    async def find_by_email_or_phone(
        self,
        email: str | None = None,
        phone: str | None = None,
        include_secret: bool = False,
    ) -> Identity | None:
        if not email and not phone:
            return None
        document = self._match("email", email) if email else self._match("phone", phone)
        return self._to_identity(document, include_secret) if document else None

    async def find_by_email(self, email: str) -> Identity | None:
        document = self._match("email", email)
        return self._to_identity(document, include_secret=False) if document else None

    async def find_by_id(self, identity_id: str, include_secret: bool = False) -> Identity | None:
        document = self._documents.get(identity_id)
        return self._to_identity(document, include_secret) if document else None

    async def exists_by_email_or_phone(
        self, email: str | None = None, phone: str | None = None
    ) -> bool:
        if email and self._match("email", email):
            return True
        if phone and self._match("phone", phone):
            return True
        return False

    async def create(self, document: dict[str, Any]) -> Identity:
        async with self._lock:
            if self._match("email", document["email"]) or (
                document.get("phone") and self._match("phone", document["phone"])
            ):
                raise IdentityAlreadyExistsError()
            stored = copy.deepcopy(document)
            stored["_id"] = uuid.uuid4().hex
            self._documents[stored["_id"]] = stored
        return self._to_identity(stored, include_secret=False)

    async def update_fields(self, identity_id: str, fields: dict[str, Any]) -> None:
        forbidden = PROTECTED_FIELDS.intersection(fields)
        if forbidden:
            raise ValueError(f"Cannot update protected fields: {sorted(forbidden)}")
        async with self._lock:
            document = self._documents.get(identity_id)
            if document is None:
                return
            for key, value in fields.items():
                document[key] = value.value if isinstance(value, IdentityStatus) else value
            document["updated_at"] = self._clock.now()

    async def set_secret(self, identity_id: str, plain_password: str) -> None:
        secret_hash = self._password_hasher.hash(plain_password)
        async with self._lock:
            document = self._documents.get(identity_id)
            if document is None:
                return
            document["secret_hash"] = secret_hash
            document["updated_at"] = self._clock.now()

    async def record_logout(self, identity_id: str) -> Identity | None:
        async with self._lock:
            document = self._documents.get(identity_id)
            if document is None:
                return None
            document["status"] = IdentityStatus.LOGGED_OUT.value
            document["token_generation"] = document.get("token_generation", 0) + 1
            document["updated_at"] = self._clock.now()
            return self._to_identity(document, include_secret=False)
