"""Local key-value store.

Values are JSON-serialized strings keyed by plain strings, mirroring the
on-device store the mobile app writes to. ``SQLAlchemyStore`` persists them in
the ``key_value_record`` table; ``MemoryStore`` keeps them in a dict and is
what the tests inject.
"""
import json

import structlog
from sqlalchemy.exc import SQLAlchemyError

from agroloop.errors import StorageError
from agroloop.models import KeyValueRecord, db

logger = structlog.get_logger()


class KeyValueStore:
    def get_item(self, key):
        raise NotImplementedError

    def set_many(self, items):
        """Write every ``key -> raw string`` pair in ``items`` together."""
        raise NotImplementedError

    def remove_many(self, keys):
        raise NotImplementedError

    def keys(self):
        raise NotImplementedError

    def set_item(self, key, value):
        self.set_many({key: value})

    def remove_item(self, key):
        self.remove_many([key])

    def get_json(self, key, default=None):
        raw = self.get_item(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError as e:
            raise StorageError(f"Corrupt value under {key!r}: {e}") from e

    def set_json(self, key, value):
        self.set_item(key, json.dumps(value))

    def set_many_json(self, items):
        self.set_many({key: json.dumps(value) for key, value in items.items()})

    def for_user(self, user_id):
        return UserScopedStore(self, user_id)


class MemoryStore(KeyValueStore):
    def __init__(self, initial=None):
        self._data = dict(initial or {})

    def get_item(self, key):
        return self._data.get(key)

    def set_many(self, items):
        self._data.update(items)

    def remove_many(self, keys):
        for key in keys:
            self._data.pop(key, None)

    def keys(self):
        return list(self._data)


class SQLAlchemyStore(KeyValueStore):
    """Store backed by the application database. Needs an app context."""

    def get_item(self, key):
        try:
            record = db.session.get(KeyValueRecord, key)
        except SQLAlchemyError as e:
            logger.error("Storage read failed", key=key, error=str(e))
            raise StorageError(str(e)) from e
        return record.value if record else None

    def set_many(self, items):
        try:
            for key, value in items.items():
                db.session.merge(KeyValueRecord(key=key, value=value))
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Storage write failed", keys=list(items), error=str(e))
            raise StorageError(str(e)) from e

    def remove_many(self, keys):
        keys = list(keys)
        if not keys:
            return
        try:
            KeyValueRecord.query.filter(KeyValueRecord.key.in_(keys)).delete(synchronize_session=False)
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Storage delete failed", keys=keys, error=str(e))
            raise StorageError(str(e)) from e

    def keys(self):
        try:
            return [key for (key,) in db.session.query(KeyValueRecord.key)]
        except SQLAlchemyError as e:
            raise StorageError(str(e)) from e


class UserScopedStore:
    """View of a store where every key carries the ``_{user_id}`` suffix."""

    def __init__(self, store, user_id):
        if not user_id:
            raise ValueError("user_id is required for a scoped store")
        self.store = store
        self.user_id = user_id

    def key(self, name):
        return f"{name}_{self.user_id}"

    def get_json(self, name, default=None):
        return self.store.get_json(self.key(name), default)

    def set_many_json(self, items):
        self.store.set_many_json({self.key(name): value for name, value in items.items()})

    def remove(self, *names):
        self.store.remove_many([self.key(name) for name in names])
