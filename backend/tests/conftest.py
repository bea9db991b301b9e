"""
Pytest configuration and shared fixtures for backend tests.

WHAT: Test environment, isolated database and provider/email overrides
WHY: Every test starts from an empty schema and never calls real services
HOW: Environment set before supplyscout is imported; an in-memory SQLite
     engine is bound to SessionLocal per test
"""

import os
import tempfile
from datetime import datetime

_LOG_DIR = tempfile.mkdtemp(prefix="supplyscout-tests-")
os.environ.update({
    "DATABASE_URL": "sqlite:///:memory:",
    "LOG_FILE": os.path.join(_LOG_DIR, "app.log"),
    "LLM_PROVIDER": "openai",
    "OPENAI_API_KEY": "",
    "RESEND_API_KEY": "",
    "LLM_RETRY_DELAY": "0",
    "SWEEP_ENABLED": "false",
})

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from supplyscout.core import models  # noqa: F401  (registers tables)
from supplyscout.core.database import Base, SessionLocal, get_db
from supplyscout.core.models import Part, PurchaseOrder
from supplyscout.core.session_manager import session_manager
from supplyscout.llm import provider_factory
from supplyscout.llm.provider_factory import reset_provider
from supplyscout.services import email_client as email_client_module
from supplyscout.services.email_client import ResendEmailClient, reset_email_client

from fixtures.mock_llm import MockLLMProvider

RESEND_TEST_URL = "https://resend.test"


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (isolated component tests)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (multiple components)"
    )


@pytest.fixture(autouse=True)
def test_db():
    """
    Fresh in-memory database per test.

    WHAT: Bind SessionLocal to a throwaway engine
    WHY: Tests must not see each other's rows
    HOW: StaticPool keeps one connection so every thread sees the same schema
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    SessionLocal.configure(bind=engine)
    session_manager.reset_cache()
    yield engine
    session_manager.reset_cache()
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(autouse=True)
def reset_singletons():
    """Clear provider and email client singletons before and after each test."""
    reset_provider()
    reset_email_client()
    yield
    reset_provider()
    reset_email_client()


@pytest.fixture
def use_provider(monkeypatch):
    """Install a provider as the process-wide LLM provider."""
    def _install(provider):
        monkeypatch.setattr(provider_factory, "_provider_instance", provider)
        return provider
    return _install


@pytest.fixture
def mock_provider_class():
    return MockLLMProvider


@pytest.fixture
def email_client(monkeypatch):
    """Configured Resend client pointed at a fake host (mock it with respx)."""
    client = ResendEmailClient(
        api_key="re_test_key",
        base_url=RESEND_TEST_URL,
        sender="SupplyScout <procurement@example.com>",
        max_retries=1,
        retry_delay=0,
    )
    monkeypatch.setattr(email_client_module, "_email_client", client)
    return client


@pytest.fixture
def seed_catalog():
    """
    Two parts with purchase history.

    Hex bolts were bought from Acme twice and from Bolt Co once; washers
    from Acme only.
    """
    with get_db() as db:
        db.add_all([
            Part(part_number="HB-M8", part_description="Hex Bolt M8 x 40mm"),
            Part(part_number="WS-M8", part_description="Flat Washer M8"),
            Part(part_number="GR-01", part_description="Bearing Grease 400g"),
        ])
        db.add_all([
            PurchaseOrder(
                supplier_name="Acme Fasteners", supplier_email="sales@acme.example",
                part_number="HB-M8", order_date=datetime(2024, 1, 10), quantity=500, price=0.42,
            ),
            PurchaseOrder(
                supplier_name="Acme Fasteners", supplier_email="Sales@Acme.example",
                part_number="HB-M8", order_date=datetime(2024, 6, 2), quantity=800, price=0.39,
            ),
            PurchaseOrder(
                supplier_name="Bolt Co", supplier_email="quotes@boltco.example",
                part_number="HB-M8", order_date=datetime(2024, 3, 15), quantity=300, price=0.45,
            ),
            PurchaseOrder(
                supplier_name="Acme Fasteners", supplier_email="sales@acme.example",
                part_number="WS-M8", order_date=datetime(2024, 2, 1), quantity=1000, price=0.05,
            ),
        ])
