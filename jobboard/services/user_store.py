"""
Credential store for user records.

``UserStore`` is the interface the auth service depends on;
``MongoUserStore`` implements it over a motor collection. Every mutation the
auth flows rely on for correctness (refresh-token rotation, reset-token
consumption) is a single conditional update so concurrent requests cannot
both succeed.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Optional

import structlog
from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from jobboard.core.exceptions import DuplicateEmail
from jobboard.core.roles import Role
from jobboard.core.security import hash_password
from jobboard.models.user import User
from jobboard.utils.helpers import normalize_email

logger = structlog.get_logger(__name__)


class UserStore(ABC):
    """Base class for credential stores."""

    @abstractmethod
    async def find_by_email(self, email: str) -> Optional[User]:
        pass

    @abstractmethod
    async def find_by_id(self, user_id: str) -> Optional[User]:
        pass

    @abstractmethod
    async def create(self, *, name: str, email: str, password: str, role: Role, now: datetime) -> User:
        """
        Insert a new user, hashing ``password``.

        Raises:
            DuplicateEmail: if the email is already registered
        """
        pass

    @abstractmethod
    async def set_refresh_token(self, user_id: str, token: Optional[str], now: datetime) -> None:
        """Overwrite the stored refresh token; ``None`` clears it."""
        pass

    @abstractmethod
    async def rotate_refresh_token(self, user_id: str, current: str, new: str, now: datetime) -> bool:
        """
        Replace the stored refresh token only if it still equals ``current``.

        Returns:
            True if this call performed the swap, False otherwise
        """
        pass

    @abstractmethod
    async def record_failed_login(
        self, user_id: str, *, max_attempts: int, lock_duration: timedelta, now: datetime
    ) -> Optional[User]:
        """
        Count a failed password check, locking the account once the count
        reaches ``max_attempts``. An expired lock restarts the count at 1.
        """
        pass

    @abstractmethod
    async def record_successful_login(self, user_id: str, *, refresh_token: str, now: datetime) -> None:
        """Clear lockout and reset fields, stamp ``last_login`` and store the refresh token."""
        pass

    @abstractmethod
    async def set_password_reset(self, user_id: str, *, token_hash: str, expires: datetime, now: datetime) -> None:
        pass

    @abstractmethod
    async def consume_password_reset(self, token_hash: str, *, new_password: str, now: datetime) -> Optional[User]:
        """
        Set a new password for the user holding an unexpired reset token,
        clearing the reset and lockout fields in the same update.

        Returns:
            The updated user, or None if no user holds a live token
        """
        pass

    @abstractmethod
    async def update_password(self, user_id: str, new_password: str, now: datetime) -> None:
        pass

    async def ping(self) -> bool:
        """Report whether the backing database is reachable."""
        return True


def _object_id(user_id: str) -> Optional[ObjectId]:
    return ObjectId(user_id) if ObjectId.is_valid(user_id) else None


class MongoUserStore(UserStore):
    """MongoDB-backed credential store."""

    def __init__(self, collection: AsyncIOMotorCollection, bcrypt_rounds: int = 12):
        self.collection = collection
        self.bcrypt_rounds = bcrypt_rounds

    async def ensure_indexes(self) -> None:
        """Create indexes for lookups used by the auth flows."""
        await self.collection.create_index([("email", ASCENDING)], unique=True)
        await self.collection.create_index([("password_reset_token", ASCENDING)], sparse=True)
        logger.info("user_indexes_ensured", collection=self.collection.name)

    async def ping(self) -> bool:
        try:
            await self.collection.database.command("ping")
        except Exception as e:
            logger.warning("mongodb_ping_failed", error=str(e))
            return False
        return True

    async def find_by_email(self, email: str) -> Optional[User]:
        document = await self.collection.find_one({"email": normalize_email(email)})
        return User.from_document(document) if document else None

    async def find_by_id(self, user_id: str) -> Optional[User]:
        oid = _object_id(user_id)
        if oid is None:
            return None
        document = await self.collection.find_one({"_id": oid})
        return User.from_document(document) if document else None

    async def create(self, *, name: str, email: str, password: str, role: Role, now: datetime) -> User:
        document = {
            "name": name,
            "email": normalize_email(email),
            "role": Role(role).value,
            "password_hash": hash_password(password, self.bcrypt_rounds),
            "login_attempts": 0,
            "is_active": True,
            "created_at": now,
            "updated_at": now,
        }
        try:
            result = await self.collection.insert_one(document)
        except DuplicateKeyError as e:
            raise DuplicateEmail() from e

        document["_id"] = result.inserted_id
        return User.from_document(document)

    async def set_refresh_token(self, user_id: str, token: Optional[str], now: datetime) -> None:
        oid = _object_id(user_id)
        if oid is None:
            return
        if token is None:
            update = {"$unset": {"refresh_token": ""}, "$set": {"updated_at": now}}
        else:
            update = {"$set": {"refresh_token": token, "updated_at": now}}
        await self.collection.update_one({"_id": oid}, update)

    async def rotate_refresh_token(self, user_id: str, current: str, new: str, now: datetime) -> bool:
        oid = _object_id(user_id)
        if oid is None:
            return False
        document = await self.collection.find_one_and_update(
            {"_id": oid, "refresh_token": current},
            {"$set": {"refresh_token": new, "updated_at": now}},
            projection={"_id": 1},
        )
        return document is not None

    async def record_failed_login(
        self, user_id: str, *, max_attempts: int, lock_duration: timedelta, now: datetime
    ) -> Optional[User]:
        oid = _object_id(user_id)
        if oid is None:
            return None

        # A lock that has run out starts a fresh count
        result = await self.collection.update_one(
            {"_id": oid, "lock_until": {"$lte": now}},
            {"$set": {"login_attempts": 1, "updated_at": now}, "$unset": {"lock_until": ""}},
        )
        if result.modified_count:
            document = await self.collection.find_one({"_id": oid})
        else:
            document = await self.collection.find_one_and_update(
                {"_id": oid},
                {"$inc": {"login_attempts": 1}, "$set": {"updated_at": now}},
                return_document=ReturnDocument.AFTER,
            )
        if document is None:
            return None

        user = User.from_document(document)
        if user.login_attempts >= max_attempts and not user.is_locked(now):
            lock_until = now + lock_duration
            await self.collection.update_one({"_id": oid}, {"$set": {"lock_until": lock_until}})
            user = user.model_copy(update={"lock_until": lock_until})
        return user

    async def record_successful_login(self, user_id: str, *, refresh_token: str, now: datetime) -> None:
        await self.collection.update_one(
            {"_id": ObjectId(user_id)},
            {
                "$set": {
                    "login_attempts": 0,
                    "last_login": now,
                    "refresh_token": refresh_token,
                    "updated_at": now,
                },
                "$unset": {
                    "lock_until": "",
                    "password_reset_token": "",
                    "password_reset_expires": "",
                },
            },
        )

    async def set_password_reset(self, user_id: str, *, token_hash: str, expires: datetime, now: datetime) -> None:
        await self.collection.update_one(
            {"_id": ObjectId(user_id)},
            {
                "$set": {
                    "password_reset_token": token_hash,
                    "password_reset_expires": expires,
                    "updated_at": now,
                }
            },
        )

    async def consume_password_reset(self, token_hash: str, *, new_password: str, now: datetime) -> Optional[User]:
        document = await self.collection.find_one_and_update(
            {"password_reset_token": token_hash, "password_reset_expires": {"$gt": now}},
            {
                "$set": {
                    "password_hash": hash_password(new_password, self.bcrypt_rounds),
                    "login_attempts": 0,
                    "updated_at": now,
                },
                "$unset": {
                    "password_reset_token": "",
                    "password_reset_expires": "",
                    "lock_until": "",
                },
            },
            return_document=ReturnDocument.AFTER,
        )
        return User.from_document(document) if document else None

    async def update_password(self, user_id: str, new_password: str, now: datetime) -> None:
        await self.collection.update_one(
            {"_id": ObjectId(user_id)},
            {
                "$set": {
                    "password_hash": hash_password(new_password, self.bcrypt_rounds),
                    "updated_at": now,
                }
            },
        )
