from typing import AsyncGenerator, List

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from PIL import Image

from packshot.core.config import PipelineConfig
from tests.helpers import FakeRemover, encode


@pytest.fixture
def small_config() -> PipelineConfig:
    return PipelineConfig(
        canvas_size=128,
        retry_base_delay_seconds=0.0,
        inpaint_enabled=False,
    )


@pytest.fixture
def photo_bytes() -> bytes:
    """Opaque 400x600 JPEG: dark product on a white studio background."""
    image = Image.new("RGB", (400, 600), (255, 255, 255))
    image.paste((40, 70, 120), (100, 150, 300, 500))
    return encode(image, "JPEG")


@pytest.fixture
def mock_client_factory():
    """Build httpx.Clients whose requests are answered by `handler`."""
    clients: List[httpx.Client] = []

    def factory(handler) -> httpx.Client:
        client = httpx.Client(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield factory

    for c in clients:
        c.close()


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    from packshot.api.dependencies import get_pipeline
    from packshot.main import app
    from packshot.pipeline.orchestrator import EnhancementPipeline

    config = PipelineConfig(canvas_size=64, retry_base_delay_seconds=0.0, inpaint_enabled=False)
    app.dependency_overrides[get_pipeline] = lambda: EnhancementPipeline(config, remover=FakeRemover())

    # Trigger lifespan events (startup/shutdown)
    async with app.router.lifespan_context(app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac

    app.dependency_overrides.clear()
