from __future__ import annotations

from enum import Enum

from ..extensions import db
from femenine.time_utils import to_utc_z


class ActivityAction(str, Enum):
    LOGIN = "LOGIN"
    LOGOUT = "LOGOUT"
    CREATE_PRODUCT = "CREATE_PRODUCT"
    UPDATE_PRODUCT = "UPDATE_PRODUCT"
    DELETE_PRODUCT = "DELETE_PRODUCT"
    VIEW_PRODUCT = "VIEW_PRODUCT"
    PRINT_BARCODE = "PRINT_BARCODE"
    CREATE_USER = "CREATE_USER"
    UPDATE_USER = "UPDATE_USER"
    DELETE_USER = "DELETE_USER"
    CREATE_SALE = "CREATE_SALE"


class ActivityLog(db.Model):
    """
    Audit trail of user actions.

    IMMUTABLE: Never update or delete. Append-only.

    product_id is deliberately not a foreign key: entries must outlive the
    physical deletion of the product they mention (product_sku keeps the
    snapshot). user_id is nullable for system actions.
    """
    __tablename__ = "activity_logs"
    __table_args__ = (
        db.Index("ix_activity_logs_user_timestamp", "user_id", "timestamp"),
        db.Index("ix_activity_logs_action_timestamp", "action", "timestamp"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    action = db.Column(
        db.Enum(ActivityAction, name="activity_action", native_enum=False, length=32, validate_strings=True),
        nullable=False,
    )
    product_id = db.Column(db.Integer, nullable=True, index=True)
    product_sku = db.Column(db.String(64), nullable=True)
    details = db.Column(db.Text, nullable=True)
    timestamp = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    user = db.relationship("User", backref=db.backref("activity_logs", lazy="dynamic"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "action": self.action.value if self.action else None,
            "productId": self.product_id,
            "productSku": self.product_sku,
            "details": self.details,
            "timestamp": to_utc_z(self.timestamp),
            "user": {
                "id": self.user.id,
                "email": self.user.email,
                "name": self.user.name,
                "role": self.user.role.value,
            } if self.user else None,
        }
