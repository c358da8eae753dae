from sqlalchemy import JSON, Column, DateTime, Index, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from .database import Base


class Document(Base):
    """
    One document of the schema-less store.

    `collection` is the full collection path, e.g. "accounts" or
    "accounts/acc-1/patients"; `kind` is its last segment so that
    collection-group queries ("every patients collection") stay indexed.
    """

    __tablename__ = "documents"

    id = Column(Integer, primary_key=True, index=True)
    collection = Column(String(512), nullable=False, index=True)
    kind = Column(String(128), nullable=False, index=True)
    doc_id = Column(String(255), nullable=False)
    # Denormalised foreign key for tenant-scoped lookups
    account_id = Column(String(255), nullable=True, index=True)
    data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("collection", "doc_id", name="uq_documents_collection_doc_id"),
        Index("ix_documents_kind_account", "kind", "account_id"),
    )
