from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class SyncDocument(db.Model):
    """
    The whole relay dataset for one deployment, stored as a JSON document.

    Reads return the full document; writes replace it. version_id is the
    SQLAlchemy version counter, so a writer that loaded an older version
    fails its UPDATE with StaleDataError instead of silently overwriting.
    """
    __tablename__ = "sync_documents"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(64), nullable=False, unique=True, index=True)
    payload = db.Column(db.Text, nullable=False, default="{}")
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<SyncDocument name={self.name!r} version={self.version_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "version_id": self.version_id,
            "size_bytes": len(self.payload or ""),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
