import logging
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from blog_auth.auth.exceptions import IdentityAlreadyExistsError
from blog_auth.core.interfaces import IClock, IIdentityStore, IPasswordHasher
from blog_auth.users.model import PROTECTED_FIELDS, Identity, IdentityStatus

logger = logging.getLogger(__name__)

# The secret hash is excluded from reads unless explicitly requested.
_WITHOUT_SECRET = {"secret_hash": 0}


def _object_id(identity_id: str) -> ObjectId | None:
    try:
        return ObjectId(identity_id)
    except (InvalidId, TypeError):
        return None


class MongoIdentityStore(IIdentityStore):
    """MongoDB identity store implementation (Single Responsibility)."""

    def __init__(
        self,
        db: AsyncIOMotorDatabase,
        password_hasher: IPasswordHasher,
        clock: IClock,
    ) -> None:
        self._collection = db["users"]
        self._password_hasher = password_hasher
        self._clock = clock

    async def ensure_indexes(self) -> None:
        """Create the uniqueness indexes for credentials."""
        await self._collection.create_index([("email", ASCENDING)], unique=True)
        await self._collection.create_index(
            [("phone", ASCENDING)], unique=True, sparse=True
        )

    async def _find_one(
        self, query: dict[str, Any], include_secret: bool
    ) -> Identity | None:
        projection = None if include_secret else _WITHOUT_SECRET
        document = await self._collection.find_one(query, projection)
        return Identity.from_document(document) if document else None

    async def find_by_email_or_phone(
        self,
        email: str | None = None,
        phone: str | None = None,
        include_secret: bool = False,
    ) -> Identity | None:
        if not email and not phone:
            return None
        query = {"email": email} if email else {"phone": phone}
        return await self._find_one(query, include_secret)

    async def find_by_email(self, email: str) -> Identity | None:
        return await self._find_one({"email": email}, include_secret=False)

    async def find_by_id(self, identity_id: str, include_secret: bool = False) -> Identity | None:
        object_id = _object_id(identity_id)
        if object_id is None:
            return None
        return await self._find_one({"_id": object_id}, include_secret)

    async def exists_by_email_or_phone(
        self, email: str | None = None, phone: str | None = None
    ) -> bool:
        clauses = []
        if email:
            clauses.append({"email": email})
        if phone:
            clauses.append({"phone": phone})
        if not clauses:
            return False
        return await self._collection.find_one({"$or": clauses}, {"_id": 1}) is not None

    async def create(self, document: dict[str, Any]) -> Identity:
        document = dict(document)
        try:
            result = await self._collection.insert_one(document)
        except DuplicateKeyError:
            raise IdentityAlreadyExistsError()
        document["_id"] = result.inserted_id
        document.pop("secret_hash", None)
        return Identity.from_document(document)

    async def update_fields(self, identity_id: str, fields: dict[str, Any]) -> None:
        forbidden = PROTECTED_FIELDS.intersection(fields)
        if forbidden:
            raise ValueError(f"Cannot update protected fields: {sorted(forbidden)}")

        object_id = _object_id(identity_id)
        if object_id is None:
            return
        update = {
            key: value.value if isinstance(value, IdentityStatus) else value
            for key, value in fields.items()
        }
        update["updated_at"] = self._clock.now()
        await self._collection.update_one({"_id": object_id}, {"$set": update})

    async def set_secret(self, identity_id: str, plain_password: str) -> None:
        object_id = _object_id(identity_id)
        if object_id is None:
            return
        secret_hash = self._password_hasher.hash(plain_password)
        await self._collection.update_one(
            {"_id": object_id},
            {"$set": {"secret_hash": secret_hash, "updated_at": self._clock.now()}},
        )

    async def record_logout(self, identity_id: str) -> Identity | None:
        object_id = _object_id(identity_id)
        if object_id is None:
            return None
        document = await self._collection.find_one_and_update(
            {"_id": object_id},
            {
                "$set": {
                    "status": IdentityStatus.LOGGED_OUT.value,
                    "updated_at": self._clock.now(),
                },
                "$inc": {"token_generation": 1},
            },
            projection=_WITHOUT_SECRET,
            return_document=ReturnDocument.AFTER,
        )
        return Identity.from_document(document) if document else None
