"""Shared fixtures for the soft delete tests."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from sample_models import (
    Base,
    Company,
    Contact,
    DiamondBase,
    LineItem,
    Quote,
    TreeBase,
)
from softdelete_toolkit.soft_delete import RelationshipRegistry, SQLAlchemyDataStore


@pytest.fixture
def db_session():
    """Create an in-memory SQLite database session for testing."""
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    TreeBase.metadata.create_all(engine)
    DiamondBase.metadata.create_all(engine)

    Session = sessionmaker(bind=engine)
    session = Session()

    yield session

    session.close()
    engine.dispose()


@pytest.fixture
def store(db_session):
    return SQLAlchemyDataStore(db_session)


@pytest.fixture
def registry():
    return RelationshipRegistry.from_models(Base)


@pytest.fixture
def xyz_company(db_session):
    """Company XYZ with quotes XYZ-1 and XYZ-2, all visible."""
    company = Company(name="XYZ")
    company.quotes = [Quote(name="XYZ-1"), Quote(name="XYZ-2")]
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture
def full_company(db_session):
    """Company with two quotes of two line items each and one contact."""
    company = Company(name="ACME")
    for quote_number in (1, 2):
        quote = Quote(name=f"ACME-{quote_number}")
        quote.line_items = [
            LineItem(name=f"ACME-{quote_number}-{item}") for item in (1, 2)
        ]
        company.quotes.append(quote)
    company.contacts.append(Contact(name="Wile E."))
    db_session.add(company)
    db_session.commit()
    return company
