from __future__ import annotations

from ..extensions import db
from phonepos.time_utils import to_utc_z


class DocumentSequence(db.Model):
    """
    Store-managed counter for day-scoped document numbers.

    One row per key such as "INV-20250101" or "RPR-20250101". Allocation is
    a single UPDATE ... SET next_number = next_number + 1 so concurrent
    writers serialize on the row lock.
    """
    __tablename__ = "document_sequences"
    __table_args__ = ({"sqlite_autoincrement": True},)

    id = db.Column(db.Integer, primary_key=True)
    prefix = db.Column(db.String(32), nullable=False, unique=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "prefix": self.prefix,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
