"""storage/ -- Object-store boundary for cratehold.

ObjectStore is the capability set the registry needs from a blob store.
S3ObjectStore is the production implementation (boto3).

Layer rule: storage/ imports only core/ (for the error taxonomy), stdlib and
third-party libraries.
"""

from storage.base import ObjectNotFound, ObjectStore

__all__ = ["ObjectNotFound", "ObjectStore"]
