import os

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

os.environ.setdefault("ANTHROPIC_API_KEY", "test-key")
os.environ.setdefault("APP_ENV", "test")

from codeteach.locales import load_locale  # noqa: E402
from codeteach.main import app  # noqa: E402
from codeteach.middleware.rate_limit import rate_limiter  # noqa: E402

from fakes import FakeGateway  # noqa: E402


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def locale():
    return load_locale("en")


@pytest_asyncio.fixture
async def api_client():
    rate_limiter.reset()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()
