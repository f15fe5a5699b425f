"""MongoDB implementation of UserRepository."""

from contextlib import nullcontext
from logging import getLogger
from typing import Any, Mapping, Sequence

import pymongo
from bson import ObjectId
from pymongo.database import Database
from pymongo.errors import PyMongoError
from pymongo.read_concern import ReadConcern
from pymongo.write_concern import WriteConcern

from adapter.mongodb import USERS_COLLECTION_NAME
from adapter.mongodb.indexes import ensure_index
from domain.model.errors import InternalError, NotFoundError, ValidationError
from domain.model.user import User
from port.user_repository import FILTER_FIELDS
from utils.concurrency import check_deadline, time_remaining

logger = getLogger(__name__)


def _object_id(user_id: str) -> ObjectId:
    if not ObjectId.is_valid(user_id):
        raise ValidationError(f"invalid ID: {user_id}")
    return ObjectId(user_id)


def _bounded():
    """Bound driver calls by what is left of the request deadline, if any."""
    remaining = time_remaining()
    if remaining is None:
        return nullcontext()
    check_deadline()
    return pymongo.timeout(remaining)


class MongoUserRepository:
    def __init__(self, db: Database):
        self.db = db
        self.collection = db[USERS_COLLECTION_NAME]

    def ensure_indexes(self) -> bool:
        """Create indexes for users collection.

        Email is a lookup key, not a uniqueness constraint.
        """
        try:
            ensure_index(self.collection, [('email', 1)], 'idx_users_email')
            ensure_index(self.collection, [('created_at', 1)], 'idx_users_created_at')
            return True
        except PyMongoError as e:
            logger.error("Failed to create users indexes", extra={"error": str(e)})
            return False

    # ── mapping ───────────────────────────────────────────────

    def _to_domain(self, doc: dict) -> User:
        """Convert MongoDB document to User domain model."""
        return User(
            id=str(doc['_id']),
            name=doc.get('name', ''),
            surnames=doc.get('surnames', ''),
            email=doc['email'],
            password_hash=doc['password_hash'],
            claim_ids=list(doc.get('claims') or []),
            created_at=doc.get('created_at'),
            updated_at=doc.get('updated_at'),
        )

    def _to_document(self, user: User) -> dict:
        """Stored fields of ``user``. The id never goes into a document body."""
        return {
            'name': user.name,
            'surnames': user.surnames,
            'email': user.email,
            'password_hash': user.password_hash,
            'claims': list(user.claim_ids),
            'created_at': user.created_at,
            'updated_at': user.updated_at,
        }

    def _to_query(self, filter: Mapping[str, Any]) -> dict:
        query = {}
        for key, value in filter.items():
            if key not in FILTER_FIELDS:
                raise ValidationError(f"unknown filter field: {key}")
            if key == 'id':
                query['_id'] = _object_id(value)
            else:
                query[key] = value
        return query

    # ── write operations ─────────────────────────────────────

    def create(self, user: User) -> str:
        """Insert a user and return the assigned ObjectId as a string."""
        try:
            with _bounded():
                result = self.collection.insert_one(self._to_document(user))
        except PyMongoError as e:
            logger.error("Failed to create user", extra={"error": str(e)})
            raise InternalError(f"failed to create user: {e}") from e
        return str(result.inserted_id)

    def create_many(self, users: Sequence[User]) -> list[str]:
        """Insert every user inside one multi-document transaction."""
        def insert_all(session) -> list[str]:
            return [
                str(self.collection.insert_one(self._to_document(user), session=session).inserted_id)
                for user in users
            ]

        try:
            with _bounded(), self.db.client.start_session() as session:
                return session.with_transaction(
                    insert_all,
                    read_concern=ReadConcern('snapshot'),
                    write_concern=WriteConcern('majority'),
                )
        except PyMongoError as e:
            logger.error("Failed to create users", extra={"count": len(users), "error": str(e)})
            raise InternalError(f"failed to create users: {e}") from e

    def update(self, user_id: str, user: User) -> None:
        oid = _object_id(user_id)
        try:
            with _bounded():
                result = self.collection.update_one({'_id': oid}, {'$set': self._to_document(user)})
        except PyMongoError as e:
            logger.error("Failed to update user", extra={"userId": user_id, "error": str(e)})
            raise InternalError(f"failed to update user: {e}") from e
        if result.matched_count == 0:
            raise NotFoundError(f"ID {user_id} not found")

    def delete(self, user_id: str) -> None:
        oid = _object_id(user_id)
        try:
            with _bounded():
                result = self.collection.delete_one({'_id': oid})
        except PyMongoError as e:
            logger.error("Failed to delete user", extra={"userId": user_id, "error": str(e)})
            raise InternalError(f"failed to delete user: {e}") from e
        if result.deleted_count == 0:
            raise NotFoundError(f"ID {user_id} not found")

    # ── read operations ──────────────────────────────────────

    def get(self, filter: Mapping[str, Any], skip: int | None = None, take: int | None = None) -> list[User]:
        """Return matching users; an empty result is an empty list."""
        if (skip is not None and skip < 0) or (take is not None and take < 0):
            raise ValidationError("skip and take cannot be negative")
        if take == 0:
            return []

        query = self._to_query(filter)
        try:
            with _bounded():
                cursor = self.collection.find(query)
                if skip:
                    cursor = cursor.skip(skip)
                if take is not None:
                    cursor = cursor.limit(take)
                return [self._to_domain(doc) for doc in cursor]
        except PyMongoError as e:
            logger.error("Failed to get users", extra={"filter": list(filter), "error": str(e)})
            raise InternalError(f"failed to get users: {e}") from e

    def get_by_id(self, user_id: str) -> User:
        oid = _object_id(user_id)
        try:
            with _bounded():
                doc = self.collection.find_one({'_id': oid})
        except PyMongoError as e:
            logger.error("Failed to get user by ID", extra={"userId": user_id, "error": str(e)})
            raise InternalError(f"failed to get user: {e}") from e
        if doc is None:
            raise NotFoundError(f"ID {user_id} not found")
        return self._to_domain(doc)

    def ping(self) -> bool:
        try:
            self.db.client.admin.command('ping')
            return True
        except PyMongoError as e:
            logger.warning("MongoDB ping failed", extra={"error": str(e)[:200]})
            return False
