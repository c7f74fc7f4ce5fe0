from __future__ import annotations

from ..extensions import db
from ..money import from_cents
from femenine.time_utils import to_utc_z


class Product(db.Model):
    """
    Product master data with a cached stock quantity.

    STOCK: stock_cached is the current on-hand quantity. Sales (OUT) and
    restocks (IN) write a StockMovement row alongside the change; sales
    decrement it with a guarded UPDATE (see sales_service) so it can never
    go below zero. The initial stock set on create or import and direct
    stockCached edits write no movement.

    LIFECYCLE: is_active=False hides a product from active inventory while
    keeping it for the sales/purchases that reference it. Products without
    any history are physically deleted instead.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock_cached >= 0", name="ck_products_stock_non_negative"),
        db.Index("ix_products_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    size = db.Column(db.String(32), nullable=True)
    color = db.Column(db.String(64), nullable=True)
    base_code = db.Column(db.String(64), nullable=True)

    sku = db.Column(db.String(64), nullable=False, unique=True, index=True)
    barcode = db.Column(db.String(64), nullable=True, index=True)

    # Authoritative storage in cents (frontend may only format for display)
    sale_price_cents = db.Column(db.Integer, nullable=True)
    cost_price_cents = db.Column(db.Integer, nullable=True)

    stock_cached = db.Column(db.Integer, nullable=False, default=0)
    stock_min = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    brand_id = db.Column(db.Integer, db.ForeignKey("brands.id"), nullable=True, index=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    brand = db.relationship("Brand", backref=db.backref("products", lazy=True))
    category = db.relationship("Category", backref=db.backref("products", lazy=True))
    supplier = db.relationship("Supplier", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} name={self.name!r}>"

    @property
    def is_low_stock(self) -> bool:
        return (self.stock_cached or 0) <= (self.stock_min or 0)

    def to_dict(self, include_relations: bool = True) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "size": self.size,
            "color": self.color,
            "baseCode": self.base_code,
            "sku": self.sku,
            "barcode": self.barcode,
            "salePrice": from_cents(self.sale_price_cents),
            "costPrice": from_cents(self.cost_price_cents),
            "stockCached": self.stock_cached,
            "stockMin": self.stock_min,
            "isActive": self.is_active,
            "isLowStock": self.is_low_stock,
            "brandId": self.brand_id,
            "categoryId": self.category_id,
            "supplierId": self.supplier_id,
            "versionId": self.version_id,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
        if include_relations:
            data["brand"] = self.brand.to_dict() if self.brand else None
            data["category"] = self.category.to_dict() if self.category else None
            data["supplier"] = self.supplier.to_dict() if self.supplier else None
        return data


class StockMovement(db.Model):
    """
    Append-only record of every stock change.

    type: IN (restock/purchase), OUT (sale)
    quantity is always positive; the type gives the direction.
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_stock_movements_quantity_positive"),
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    TYPE_IN = "IN"
    TYPE_OUT = "OUT"

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    type = db.Column(db.String(16), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    sale_item_id = db.Column(db.Integer, db.ForeignKey("sale_items.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    product = db.relationship("Product", backref=db.backref("movements", lazy="dynamic"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "type": self.type,
            "quantity": self.quantity,
            "saleItemId": self.sale_item_id,
            "userId": self.user_id,
            "note": self.note,
            "createdAt": to_utc_z(self.created_at),
        }


class Purchase(db.Model):
    """Supplier purchase document (incoming goods)."""
    __tablename__ = "purchases"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    total_cents = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    supplier = db.relationship("Supplier", backref=db.backref("purchases", lazy=True))


class PurchaseItem(db.Model):
    __tablename__ = "purchase_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    unit_cost_cents = db.Column(db.Integer, nullable=False, default=0)

    purchase = db.relationship("Purchase", backref=db.backref("items", lazy=True))
    product = db.relationship("Product", backref=db.backref("purchase_items", lazy="dynamic"))
