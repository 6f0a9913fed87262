"""
Document persistence for Tripbook.

Services talk to typed repositories; repositories talk to a DocumentStore,
backed by DynamoDB in deployed environments or memory for local runs and tests.
"""

from core.db.dynamo import DynamoDocumentStore
from core.db.memory import InMemoryDocumentStore
from core.db.repository import Repository
from core.db.store import DocumentStore, DuplicateValueError

__all__ = ["DocumentStore", "DuplicateValueError", "DynamoDocumentStore", "InMemoryDocumentStore", "Repository"]
