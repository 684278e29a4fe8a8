# pos_edge/db/models/products.py
from sqlalchemy import JSON, BigInteger, Column, Index, String

from pos_edge.db.base import Base


class Product(Base):
    __tablename__ = "products"

    """Local product catalog snapshot.

    The full product document lives in ``data``; ``name_lower`` is the
    normalized-lowercase projection of its name that backs prefix search.
    """

    id = Column(String, primary_key=True)
    name_lower = Column(String, nullable=False, default="")
    category = Column(String, nullable=True, index=True)

    data = Column(JSON, nullable=False)
    updated_at = Column(BigInteger, nullable=False)

    __table_args__ = (
        Index("ix_products_name_lower_id", "name_lower", "id"),
    )

    @classmethod
    def from_document(cls, doc: dict) -> "Product":
        return cls(
            id=doc["id"],
            name_lower=str(doc.get("name") or "").lower(),
            category=doc.get("category"),
            data=doc,
            updated_at=int(doc.get("updatedAt") or 0),
        )
