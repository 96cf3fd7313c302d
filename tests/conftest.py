import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

import sahaay.database
import sahaay.events
from sahaay.api import create_app
from sahaay.database import get_db, load_sample_data


@pytest_asyncio.fixture
async def client():
    """
    Test fixture that creates an async client for the API.
    """
    app = create_app()
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as async_client:
        yield async_client


@pytest.fixture(autouse=True)
def reset_state():
    """Start every test from a fresh database holding the sample data."""
    sahaay.database._db = None
    sahaay.events._broadcaster = None
    load_sample_data(get_db())
    yield
    sahaay.database._db = None
    sahaay.events._broadcaster = None
