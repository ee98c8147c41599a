from __future__ import annotations

from ..extensions import db
from ecodues.time_utils import to_utc_z

USER_TYPES = ("consumer", "business", "retailer", "company", "admin")


class User(db.Model):
    """
    An account that can pay a consumer-tier due.

    Business owners, retailer and company staff are users too; the
    party tables below point back here.
    """
    __tablename__ = "users"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    user_type = db.Column(db.String(16), nullable=False, default="consumer", index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} type={self.user_type}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "user_type": self.user_type,
            "created_at": to_utc_z(self.created_at),
        }


class Business(db.Model):
    __tablename__ = "businesses"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(64), nullable=False, default="general")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    owner = db.relationship("User", backref=db.backref("businesses", lazy=True))

    def __repr__(self) -> str:
        return f"<Business id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "name": self.name,
            "type": self.type,
            "created_at": to_utc_z(self.created_at),
        }


class Retailer(db.Model):
    __tablename__ = "retailers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), nullable=True)
    location = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User")

    def __repr__(self) -> str:
        return f"<Retailer id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "email": self.email,
            "location": self.location,
            "created_at": to_utc_z(self.created_at),
        }


class Company(db.Model):
    __tablename__ = "companies"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    contact_person = db.Column(db.String(255), nullable=True)
    email = db.Column(db.String(255), nullable=True)

    # Running total of settled company-tier dues
    total_disposal_collected = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Company id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "contact_person": self.contact_person,
            "email": self.email,
            "total_disposal_collected": str(self.total_disposal_collected or 0),
            "created_at": to_utc_z(self.created_at),
        }


class RetailerBusinessLink(db.Model):
    """
    Business registered with a retailer.

    Replaces a mutable array column on the retailer row: membership is a
    row, so concurrent registrations cannot overwrite each other.
    """
    __tablename__ = "retailer_business_links"
    __table_args__ = (
        db.UniqueConstraint("business_id", "retailer_id", name="uq_retailer_business"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    retailer_id = db.Column(db.Integer, db.ForeignKey("retailers.id"), nullable=False, index=True)
    established_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    business = db.relationship("Business")
    retailer = db.relationship("Retailer", backref=db.backref("business_links", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "retailer_id": self.retailer_id,
            "established_at": to_utc_z(self.established_at),
        }
