from __future__ import annotations

from ..extensions import db
from stockline.time_utils import to_utc_z


USER_ROLE_ADMIN = "admin"
USER_ROLE_OPERATOR = "operator"


class User(db.Model):
    """
    Identity record used for attribution of movements and orders.

    Authentication itself happens upstream; this table only answers
    "who is acting" and "are they elevated".
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    role = db.Column(db.String(32), nullable=False, default=USER_ROLE_OPERATOR)
    position = db.Column(db.String(120), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def is_admin(self) -> bool:
        return self.role == USER_ROLE_ADMIN

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "position": self.position,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }
