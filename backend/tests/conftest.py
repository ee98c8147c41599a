"""
Pytest fixtures for EcoDues backend tests.

Provides test database setup, a small supply chain (consumer, business,
retailer, company, stocked item) and test client.
"""

from decimal import Decimal

import pytest
from ecodues import create_app
from ecodues.extensions import db
from ecodues.models import (
    User,
    Business,
    Retailer,
    Company,
    CompanyProduct,
    RetailerInventory,
    RetailerBusinessLink,
    BusinessTransaction,
)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def consumer(db_session):
    """A plain consumer with no business."""
    user = User(email="consumer@example.com", name="Casey Consumer", user_type="consumer")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def owner(db_session):
    """User who owns the business fixture."""
    user = User(email="owner@example.com", name="Olive Owner", user_type="business")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def business(db_session, owner):
    business = Business(owner_id=owner.id, name="Corner Cafe", type="cafe")
    db_session.add(business)
    db_session.commit()
    return business


@pytest.fixture(scope='function')
def retailer(db_session):
    retailer = Retailer(name="Green Goods", email="retail@example.com", location="Main St")
    db_session.add(retailer)
    db_session.commit()
    return retailer


@pytest.fixture(scope='function')
def company(db_session):
    company = Company(name="PolyCorp", contact_person="Pat", email="pat@polycorp.example")
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope='function')
def product(db_session, company):
    """Company material with a 0.05 disposal cost per unit (gram)."""
    product = CompanyProduct(
        company_id=company.id,
        name="PET Granulate",
        category="material",
        disposal_cost=Decimal("0.05"),
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def stocked_item(db_session, retailer, product):
    """100 units at 2.00 each, 10 g of plastic per unit at 0.05/g."""
    item = RetailerInventory(
        retailer_id=retailer.id,
        company_product_id=product.id,
        quantity=100,
        unit_price=Decimal("2.00"),
        status="available",
        plastic_quantity_grams=Decimal("10"),
        plastic_cost_per_gram=Decimal("0.05"),
        total_plastic_cost=Decimal("0.50"),
        is_custom_product=False,
    )
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def linked_chain(db_session, business, retailer, stocked_item):
    """
    Full upstream path for the stocked item:
    business bought it (consumer -> business), is registered with the
    retailer (business -> retailer), and the item is a company product
    (retailer -> company).
    """
    db_session.add(BusinessTransaction(business_id=business.id, inventory_id=stocked_item.id, status="completed"))
    db_session.add(RetailerBusinessLink(business_id=business.id, retailer_id=retailer.id))
    db_session.commit()
    return stocked_item
