import io
import random
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import aiohttp
import pytest
from PIL import Image

from agroloop.app import create_app
from agroloop.config import TestingConfig
from agroloop.services.ledger import ActivityLedger
from agroloop.services.verification import VerificationRegistry
from agroloop.storage import MemoryStore


class FrozenClock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeResponse:
    def __init__(self, payload=None, status=200):
        self.payload = payload
        self.status = status

    def raise_for_status(self):
        if self.status >= 400:
            raise aiohttp.ClientError(f"HTTP {self.status}")

    async def json(self):
        return self.payload

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error:
            raise self.error
        return self.response

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


def plantnet_session(payload=None, status=200, error=None):
    session = FakeSession(FakeResponse(payload, status), error)
    factory = lambda: session
    factory.session = session
    return factory


def plantnet_match(score, common_names, scientific_name="Phytophthora infestans"):
    return {"results": [{
        "score": score,
        "species": {"scientificNameWithoutAuthor": scientific_name, "commonNames": common_names},
    }]}


class FakeOpenAI:
    """Stands in for ``openai.OpenAI``; every instance shares ``calls``."""

    def __init__(self, reply="Rotate your crops.", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def __call__(self, api_key=None, timeout=None):
        self.api_key = api_key
        return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=self._create)))

    def _create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error:
            raise self.error
        message = SimpleNamespace(content=self.reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def png_bytes(color=(34, 139, 34)):
    buffer = io.BytesIO()
    Image.new('RGB', (4, 4), color).save(buffer, format='PNG')
    return buffer.getvalue()


@pytest.fixture
def clock():
    return FrozenClock(datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def registry(store, clock):
    return VerificationRegistry(store, clock=clock, rng=random.Random(7))


@pytest.fixture
def ledger(store, clock):
    return ActivityLedger(store.for_user('f1'), clock=clock)


@pytest.fixture
def image_file(tmp_path):
    path = tmp_path / "leaf.png"
    path.write_bytes(png_bytes())
    return str(path)


@pytest.fixture
def app(store):
    return create_app(TestingConfig, store=store, rng=random.Random(3))


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def user(client):
    response = client.post('/api/auth/signin', json={"email": "farmer@example.com", "password": "secret1"})
    return response.get_json()["user"]
