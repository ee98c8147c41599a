from __future__ import annotations

from ..extensions import db
from ecodues.time_utils import to_utc_z

INVENTORY_STATUS_AVAILABLE = "available"
INVENTORY_STATUS_OUT_OF_STOCK = "out_of_stock"
INVENTORY_STATUS_DISCONTINUED = "discontinued"

MOVEMENT_PURCHASE = "purchase"
MOVEMENT_RETURN = "return"
MOVEMENT_ADJUSTMENT = "adjustment"
MOVEMENT_KINDS = (MOVEMENT_PURCHASE, MOVEMENT_RETURN, MOVEMENT_ADJUSTMENT)


def _money(value) -> str | None:
    return str(value) if value is not None else None


class CompanyProduct(db.Model):
    """
    Product or raw plastic material offered by a company.

    Custom products assembled by a retailer are also recorded here with
    company_id NULL and retailer_id set, so every inventory row can point
    at a product.
    """
    __tablename__ = "company_products"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=True, index=True)
    retailer_id = db.Column(db.Integer, db.ForeignKey("retailers.id"), nullable=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=False, default="material")

    # Disposal cost per unit sold (per gram for materials)
    disposal_cost = db.Column(db.Numeric(12, 4), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    company = db.relationship("Company", backref=db.backref("products", lazy=True))

    def __repr__(self) -> str:
        return f"<CompanyProduct id={self.id} name={self.name!r} company_id={self.company_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "company_id": self.company_id,
            "retailer_id": self.retailer_id,
            "name": self.name,
            "category": self.category,
            "disposal_cost": _money(self.disposal_cost),
            "created_at": to_utc_z(self.created_at),
        }


class RetailerInventory(db.Model):
    """
    Stock held by a retailer.

    Quantity is a mutable counter (every purchase, return and adjustment
    rewrites it); rows are never deleted, status reflects depletion.
    Plastic fields are per unit: total_plastic_cost = grams * cost/gram.
    """
    __tablename__ = "retailer_inventory"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_retailer_inventory_quantity_nonneg"),
        db.Index("ix_retailer_inventory_retailer_product", "retailer_id", "company_product_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    retailer_id = db.Column(db.Integer, db.ForeignKey("retailers.id"), nullable=False, index=True)
    company_product_id = db.Column(db.Integer, db.ForeignKey("company_products.id"), nullable=True, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    unit_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default=INVENTORY_STATUS_AVAILABLE, index=True)

    plastic_quantity_grams = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    plastic_cost_per_gram = db.Column(db.Numeric(12, 4), nullable=False, default=0)
    total_plastic_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    product_name = db.Column(db.String(255), nullable=True)
    product_category = db.Column(db.String(64), nullable=True)
    product_description = db.Column(db.Text, nullable=True)
    is_custom_product = db.Column(db.Boolean, nullable=False, default=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    retailer = db.relationship("Retailer", backref=db.backref("inventory", lazy=True))
    company_product = db.relationship("CompanyProduct")
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<RetailerInventory id={self.id} retailer_id={self.retailer_id} qty={self.quantity}>"

    @property
    def display_name(self) -> str:
        if self.product_name:
            return self.product_name
        if self.company_product is not None:
            return self.company_product.name
        return "Unknown Product"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "retailer_id": self.retailer_id,
            "company_product_id": self.company_product_id,
            "name": self.display_name,
            "quantity": self.quantity,
            "unit_price": _money(self.unit_price),
            "status": self.status,
            "plastic_quantity_grams": _money(self.plastic_quantity_grams),
            "plastic_cost_per_gram": _money(self.plastic_cost_per_gram),
            "total_plastic_cost": _money(self.total_plastic_cost),
            "product_category": self.product_category,
            "product_description": self.product_description,
            "is_custom_product": self.is_custom_product,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryTransaction(db.Model):
    """Business-side stock movement against a retailer's inventory."""
    __tablename__ = "inventory_transactions"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    inventory_id = db.Column(db.Integer, db.ForeignKey("retailer_inventory.id"), nullable=False, index=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=True, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    transaction_type = db.Column(db.String(16), nullable=False, index=True)

    unit_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    plastic_quantity_purchased = db.Column(db.Numeric(12, 3), nullable=False, default=0)
    plastic_disposal_cost = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    inventory = db.relationship("RetailerInventory")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "inventory_id": self.inventory_id,
            "business_id": self.business_id,
            "quantity": self.quantity,
            "transaction_type": self.transaction_type,
            "unit_price": _money(self.unit_price),
            "total_amount": _money(self.total_amount),
            "plastic_quantity_purchased": _money(self.plastic_quantity_purchased),
            "plastic_disposal_cost": _money(self.plastic_disposal_cost),
            "occurred_at": to_utc_z(self.occurred_at),
        }


class BusinessTransaction(db.Model):
    """Which business bought which inventory item; drives consumer -> business lookup."""
    __tablename__ = "business_transactions"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    inventory_id = db.Column(db.Integer, db.ForeignKey("retailer_inventory.id"), nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default="completed")

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "inventory_id": self.inventory_id,
            "status": self.status,
            "occurred_at": to_utc_z(self.occurred_at),
        }
