"""
Nestmate — Storage error taxonomy.

Read paths report absence with ``None`` or an empty list; these exceptions
are reserved for mutations whose target must exist, registration conflicts,
and a durable backend that cannot be reached at startup.
"""


class StorageError(Exception):
    """Base class for every error raised by a storage backend."""


class NotFoundError(StorageError):
    def __init__(self, entity: str, key: object) -> None:
        super().__init__(f"{entity} {key!r} not found")
        self.entity = entity
        self.key = key


class DuplicateHandleError(StorageError):
    def __init__(self, username: str) -> None:
        super().__init__(f"Username {username!r} already exists")
        self.username = username


class DependencyUnavailableError(StorageError):
    """Durable storage is required but missing or unreachable."""
