"""Shared test fixtures for the studio billing test suite."""

import os
from pathlib import Path
from uuid import UUID, uuid4

import pytest
from dotenv import load_dotenv

# Load .env file BEFORE any other imports that might use env vars
load_dotenv(Path(__file__).parent.parent / ".env")

# Reset vault client singleton to pick up env vars
import clients.vault_client as vault_module
vault_module._vault_client_instance = None
vault_module._secret_cache.clear()

from core.models import Service, ServiceVariant, ServiceWithVariants, VariantType


# =============================================================================
# TEST CONSTANTS
# =============================================================================

SERVICE_ID = UUID("10000000-0000-0000-0000-000000000001")
SERVICE_NAME = "圖騰小圖案"

# Primary test customer
CUSTOMER_ID = UUID("00000000-0000-0000-0000-000000000001")

# Secondary test customer - use for per-member isolation tests
CUSTOMER_B_ID = UUID("00000000-0000-0000-0000-000000000002")

COLOR_OVERRIDE = {
    "colorPriceDiff": 1000,
    "excludeSizes": ["Z"],
    "zColorPrice": 1000,
    "note": "彩色依尺寸加價",
}


def build_variant(
    variant_type: VariantType,
    name: str,
    price_modifier: int = 0,
    service_id: UUID = SERVICE_ID,
    **fields,
) -> ServiceVariant:
    return ServiceVariant(
        id=uuid4(),
        service_id=service_id,
        type=variant_type,
        name=name,
        price_modifier=price_modifier,
        **fields,
    )


# =============================================================================
# CATALOG FIXTURES
# =============================================================================


@pytest.fixture
def variant_factory():
    """Build a ServiceVariant for the test service (override service_id to move it)."""
    return build_variant


@pytest.fixture
def service() -> Service:
    """Tattoo service with no base price: sizes carry the price."""
    return Service(id=SERVICE_ID, name=SERVICE_NAME, price=0)


@pytest.fixture
def variants() -> list[ServiceVariant]:
    """
    Variants of the test service.

    Sizes: T-1 2000 (required type), T-2 3000, Z 500
    Colors: 黑白 flat 0, 彩色 size-relative (+1000, Z flat 1000)
    """
    return [
        build_variant(VariantType.SIZE, "T-1", 2000, code="T1", is_required=True, sort_order=1),
        build_variant(VariantType.SIZE, "T-2", 3000, code="T2", is_required=True, sort_order=2),
        build_variant(VariantType.SIZE, "Z", 500, code="Z", is_required=True, sort_order=3),
        build_variant(VariantType.COLOR, "黑白", 0, sort_order=1),
        build_variant(VariantType.COLOR, "彩色", 0, sort_order=2, metadata=dict(COLOR_OVERRIDE)),
        build_variant(VariantType.POSITION, "手臂", 0, sort_order=1),
        build_variant(VariantType.POSITION, "背部", 800, sort_order=2),
        build_variant(VariantType.SIDE, "左", 0),
        build_variant(VariantType.STYLE, "寫實", 1000, is_active=False),
        build_variant(VariantType.COMPLEXITY, "高", 700, code="HIGH"),
        build_variant(VariantType.DESIGN_FEE, "標準設計", 1500),
    ]


@pytest.fixture
def service_with_variants(service, variants) -> ServiceWithVariants:
    return ServiceWithVariants(service=service, variants=variants)


@pytest.fixture
def catalog(service_with_variants):
    """VariantCatalog over the test service."""
    from core.catalog import VariantCatalog

    return VariantCatalog.from_service(service_with_variants)


# =============================================================================
# SERVICE FIXTURES (in-memory repository)
# =============================================================================


@pytest.fixture
def repository(service, variants):
    """MemoryStudioRepository seeded with the test service."""
    from core.repositories import MemoryStudioRepository

    repo = MemoryStudioRepository()
    repo.put_service(service, variants)
    return repo


@pytest.fixture
def catalog_service(repository):
    from core.services.catalog_service import CatalogService

    return CatalogService(repository)


@pytest.fixture
def cart_service(repository, catalog_service):
    from core.services.cart_service import CartService

    return CartService(repository, catalog_service)


@pytest.fixture
def billing_service(repository, catalog_service):
    from core.services.billing_service import BillingService

    return BillingService(repository, catalog_service)


@pytest.fixture
def payment_ledger(repository):
    from core.services.payment_ledger import PaymentLedger

    return PaymentLedger(repository)


@pytest.fixture
def customer_id() -> UUID:
    """The primary test customer's ID."""
    return CUSTOMER_ID


@pytest.fixture
def customer_b_id() -> UUID:
    """The secondary test customer's ID."""
    return CUSTOMER_B_ID


# =============================================================================
# DATABASE FIXTURES (integration, opt-in)
# =============================================================================


@pytest.fixture(scope="session")
def db():
    """Session-scoped PostgresClient against STUDIO_TEST_DATABASE_URL, schema applied."""
    database_url = os.getenv("STUDIO_TEST_DATABASE_URL")
    if not database_url:
        pytest.skip("STUDIO_TEST_DATABASE_URL not set")

    from clients.postgres_client import PostgresClient
    from core.repositories import PostgresStudioRepository

    client = PostgresClient(database_url)
    PostgresStudioRepository(client).apply_schema()
    yield client
    client.close()


@pytest.fixture
def pg_repository(db):
    """PostgresStudioRepository over freshly truncated tables."""
    from core.repositories import PostgresStudioRepository

    db.execute("""
        TRUNCATE
            payment_allocations, payments, appointment_bill_items, appointment_bills,
            cart_items, service_variants, services, members
        CASCADE
    """)
    return PostgresStudioRepository(db)
