"""
Pytest configuration and shared fixtures for the search scoping tests.
"""
import os
import sys
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))

# Load environment variables
from dotenv import load_dotenv
load_dotenv(os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env"))


# ============================================================================
# Fixtures: Configuration
# ============================================================================

@pytest.fixture
def filter_config():
    """FilterConfig with the default prefix and a few custom taxonomies registered."""
    from filters.config import FilterConfig

    return FilterConfig(
        registered_taxonomies=frozenset({
            "category", "post_tag", "product_cat", "product_tag", "pa_color", "color", "product_brand",
        }),
    )


@pytest.fixture
def test_settings():
    """Settings isolated from the environment and .env file."""
    from config.settings import get_settings_for_testing
    return get_settings_for_testing()


# ============================================================================
# Fixtures: Test Data Factories
# ============================================================================

@pytest.fixture
def shop_page_html() -> str:
    """Shop archive page with filter widgets, active pills and a search form."""
    return """
    <html>
    <body class="archive tax-product_cat term-15 product_cat-shoes">
      <div data-jezweb-current-term="1" data-jezweb-taxonomy="product_cat"
           data-jezweb-term-id="15" data-jezweb-term-slug="shoes"></div>

      <div class="jet-filter" data-content-id="7" data-query-var="pa_color">
        <input type="checkbox" class="jet-checkboxes-list__input" value="red" checked>
        <input type="checkbox" class="jet-checkboxes-list__input" value="blue">
      </div>

      <ul class="woocommerce-widget-layered-nav-list">
        <li class="woocommerce-widget-layered-nav-list__item--chosen"
            data-taxonomy="product_tag" data-term-slug="sale"><a href="#">Sale</a></li>
      </ul>

      <select name="tax-product_brand">
        <option value="-1">Any brand</option>
        <option value="acme" selected>Acme</option>
      </select>

      <form role="search" class="search-form" action="/">
        <input type="search" name="s" value="">
      </form>
    </body>
    </html>
    """


@pytest.fixture
def catalog_items() -> list[dict]:
    """Small catalog of products and posts for search tests."""
    return [
        {
            "id": 1,
            "title": "Blue Trail Runner",
            "post_type": "product",
            "permalink": "https://shop.example/p/blue-trail-runner",
            "excerpt": "Lightweight running shoe",
            "price": "89.00",
            "regular_price": "99.00",
            "sale_price": "89.00",
            "in_stock": True,
            "terms": {
                "product_cat": [{"id": 15, "slug": "shoes"}],
                "pa_color": [{"id": 31, "slug": "blue"}],
            },
        },
        {
            "id": 2,
            "title": "Blue Rain Jacket",
            "post_type": "product",
            "permalink": "https://shop.example/p/blue-rain-jacket",
            "price": "120.00",
            "regular_price": "120.00",
            "in_stock": False,
            "terms": {
                "product_cat": [{"id": 16, "slug": "jackets"}],
                "pa_color": [{"id": 31, "slug": "blue"}],
            },
        },
        {
            "id": 3,
            "title": "Red Court Sneaker",
            "post_type": "product",
            "permalink": "https://shop.example/p/red-court-sneaker",
            "price": "70.00",
            "regular_price": "70.00",
            "terms": {
                "product_cat": [{"id": 15, "slug": "shoes"}],
                "product_tag": [{"id": 40, "slug": "sale"}],
                "pa_color": [{"id": 32, "slug": "red"}],
            },
        },
        {
            "id": 4,
            "title": "How to pick blue running shoes",
            "post_type": "post",
            "permalink": "https://shop.example/blog/blue-shoes",
            "content": "A guide.",
            "terms": {"category": [{"id": 3, "slug": "guides"}]},
        },
    ]


# ============================================================================
# Fixtures: FastAPI Test Client
# ============================================================================

@pytest.fixture
def app(catalog_items):
    """FastAPI application with an in-memory store and catalog."""
    from api.app import create_app
    from search.engine import InMemoryCatalog, get_search_engine
    from services.filter_store import FilterStateService, get_filter_state_service

    application = create_app()
    store = FilterStateService(backend="memory")
    catalog = InMemoryCatalog(catalog_items)
    application.dependency_overrides[get_filter_state_service] = lambda: store
    application.dependency_overrides[get_search_engine] = lambda: catalog
    application.state.test_store = store
    return application


@pytest.fixture
def client(app):
    """Synchronous test client."""
    from fastapi.testclient import TestClient
    return TestClient(app)


@pytest.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing FastAPI endpoints."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# ============================================================================
# Markers auto-use
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "slow: marks tests as slow")
    config.addinivalue_line("markers", "redis: marks tests that require a Redis server")


# ============================================================================
# JWT Token Generation
# ============================================================================

def generate_test_jwt(
    user_id: str = "test-user-001",
    secret: str = "jwt-test-secret",
    exp_seconds: int = 3600,
) -> str:
    """HS256 customer token accepted when AUTH_JWT_SECRET is `secret`."""
    import time
    import jwt

    now = int(time.time())
    payload = {
        "sub": user_id,
        "aud": "authenticated",
        "role": "authenticated",
        "email": f"{user_id}@test.com",
        "exp": now + exp_seconds,
        "iat": now,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def jwt_factory():
    """Fixture exposing generate_test_jwt for custom claims."""
    return generate_test_jwt


@pytest.fixture
def test_jwt_token() -> str:
    """Fixture providing a valid test JWT token."""
    return generate_test_jwt()


@pytest.fixture
def auth_headers(test_jwt_token: str) -> dict:
    """Fixture providing auth headers with Bearer token."""
    return {"Authorization": f"Bearer {test_jwt_token}"}


# ============================================================================
# Skip conditions
# ============================================================================

def pytest_collection_modifyitems(config, items):
    """Auto-skip tests whose external services are not configured."""
    skip_integration = pytest.mark.skip(reason="Integration tests require running server")
    skip_redis = pytest.mark.skip(reason="Redis tests require TEST_REDIS_URL")

    server_url = os.getenv("TEST_SERVER_URL")
    redis_url = os.getenv("TEST_REDIS_URL")

    for item in items:
        if "integration" in item.keywords and not server_url:
            item.add_marker(skip_integration)
        if "redis" in item.keywords and not redis_url:
            item.add_marker(skip_redis)
