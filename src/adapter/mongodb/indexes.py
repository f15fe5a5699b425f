"""Index management for MongoDB collections."""

from logging import getLogger

from pymongo.collection import Collection

logger = getLogger(__name__)


def ensure_index(collection: Collection, keys: list, name: str, unique: bool = False) -> bool:
    """Make sure ``name`` exists over ``keys`` with the given uniqueness.

    An existing index with the same name but other keys or
    uniqueness, or with the same keys under another name, is dropped first.
    This is how a former unique email index becomes a plain lookup index.

    Returns:
        True if the index was created, False if it was already in place.
    """
    wanted = dict(keys)
    for existing, info in collection.index_information().items():
        if existing == '_id_':
            continue

        same_keys = dict(info.get('key', [])) == wanted
        same_unique = bool(info.get('unique', False)) == unique
        if existing == name and same_keys and same_unique:
            return False
        if existing == name or same_keys:
            logger.warning("Dropping conflicting index", extra={"index": existing, "collection": collection.name})
            collection.drop_index(existing)

    collection.create_index(keys, name=name, unique=unique)
    logger.info("Created index", extra={"index": name, "collection": collection.name})
    return True
