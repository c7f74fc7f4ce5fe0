from __future__ import annotations

from ..extensions import db
from ..money import from_cents
from femenine.time_utils import to_utc_z


class Sale(db.Model):
    """
    Sale receipt. The id doubles as the human-facing folio.

    Append-only: a Sale is written together with its items in one
    transaction and never updated or deleted afterwards. Totals are the
    server-computed values (integer cents) used for receipts and reports.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    subtotal_cents = db.Column(db.Integer, nullable=False)
    tax_cents = db.Column(db.Integer, nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)
    tax_rate = db.Column(db.Numeric(6, 4), nullable=False)
    tax_included = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    user = db.relationship("User", backref=db.backref("sales", lazy="dynamic"))
    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        order_by="SaleItem.id",
        lazy="selectin",
    )

    @property
    def items_count(self) -> int:
        return sum(item.quantity for item in self.items)

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "folio": self.id,
            "userId": self.user_id,
            "user": self.user.to_summary() if self.user else None,
            "subtotal": from_cents(self.subtotal_cents),
            "taxAmount": from_cents(self.tax_cents),
            "total": from_cents(self.total_cents),
            "taxRate": float(self.tax_rate) if self.tax_rate is not None else None,
            "taxIncluded": self.tax_included,
            "itemsCount": self.items_count,
            "createdAt": to_utc_z(self.created_at),
        }
        if include_items:
            data["saleItems"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """
    One receipt line.

    price_cents and discount_cents are snapshots taken at sale time; later
    catalog price changes never touch them. discount is per unit.
    """
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", back_populates="items")
    product = db.relationship("Product", backref=db.backref("sale_items", lazy="dynamic"))

    @property
    def line_total_cents(self) -> int:
        return (self.price_cents - self.discount_cents) * self.quantity

    def to_dict(self) -> dict:
        product = self.product
        return {
            "id": self.id,
            "saleId": self.sale_id,
            "productId": self.product_id,
            "quantity": self.quantity,
            "price": from_cents(self.price_cents),
            "discount": from_cents(self.discount_cents),
            "lineTotal": from_cents(self.line_total_cents),
            "product": {
                "id": product.id,
                "name": product.name,
                "sku": product.sku,
                "salePrice": from_cents(product.sale_price_cents),
                "brand": product.brand.to_dict() if product.brand else None,
                "category": product.category.to_dict() if product.category else None,
            } if product else None,
        }
