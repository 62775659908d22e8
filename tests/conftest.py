"""Shared pytest fixtures for PixelMorpher tests."""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("CLOUDINARY_CLOUD_NAME", "demo")
os.environ.setdefault("CLOUDINARY_API_KEY", "test-api-key")
os.environ.setdefault("CLOUDINARY_API_SECRET", "test-api-secret")

import asyncio
from pathlib import Path
from typing import Any, Callable, Dict, Generator
from unittest.mock import Mock

import pytest
from fastapi.testclient import TestClient

from pixelmorpher.actions import ActionContext, add_image, create_user
from pixelmorpher.auth.security import get_current_user
from pixelmorpher.database import Database
from pixelmorpher.main import create_app
from pixelmorpher.models.user import User
from pixelmorpher.services.cloudinary_service import CloudinaryService


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def database(tmp_path: Path) -> Generator[Database, None, None]:
    """Connected database backed by a temporary sqlite file.

    Yields:
        Database instance

    Cleanup:
        Engine is disposed after the test completes
    """
    db = Database(f"sqlite:///{tmp_path / 'pixelmorpher.db'}")
    asyncio.run(db.connect())
    try:
        yield db
    finally:
        asyncio.run(db.close())


@pytest.fixture
def revalidator() -> Mock:
    """Stand-in for the Redis revalidation service."""
    revalidator = Mock()
    revalidator.revalidate_path.return_value = True
    revalidator.consume_revalidation.return_value = None
    revalidator.ping.return_value = True
    return revalidator


@pytest.fixture
def media() -> CloudinaryService:
    """Cloudinary service for the public demo cloud; URL building is offline."""
    return CloudinaryService(cloud_name="demo", api_key="test-api-key", api_secret="test-api-secret")


@pytest.fixture
def ctx(database: Database, revalidator: Mock, media: CloudinaryService) -> ActionContext:
    return ActionContext(database=database, revalidator=revalidator, media=media)


@pytest.fixture
def make_user(ctx: ActionContext) -> Callable[..., Dict[str, Any]]:
    """Factory creating users; returns their plain-data records."""
    counter = {"n": 0}

    def _make_user(**overrides) -> Dict[str, Any]:
        counter["n"] += 1
        n = counter["n"]
        payload = {
            "auth_id": f"google-{n}",
            "email": f"user{n}@pixelmorpher.io",
            "username": f"user{n}",
            "first_name": "Ada",
            "last_name": f"Lovelace{n}",
        }
        payload.update(overrides)
        return asyncio.run(create_user(ctx, payload)).unwrap()

    return _make_user


@pytest.fixture
def user(make_user) -> Dict[str, Any]:
    return make_user()


@pytest.fixture
def image_payload() -> Dict[str, Any]:
    """Valid image record for a restore transformation."""
    return {
        "title": "Old portrait",
        "public_id": "sample",
        "transformation_type": "restore",
        "width": 800,
        "height": 600,
        "config": {"restore": True},
        "secure_url": "https://res.cloudinary.com/demo/image/upload/sample.jpg",
        "transformation_url": "https://res.cloudinary.com/demo/image/upload/e_gen_restore/sample",
    }


@pytest.fixture
def make_image(ctx: ActionContext, image_payload: Dict[str, Any]) -> Callable[..., Dict[str, Any]]:
    """Factory persisting images for a given user."""

    def _make_image(user_id: int, **overrides) -> Dict[str, Any]:
        payload = {**image_payload, **overrides}
        return asyncio.run(add_image(ctx, payload, user_id, "/")).unwrap()

    return _make_image


@pytest.fixture
def app(database: Database, revalidator: Mock, media: CloudinaryService):
    return create_app(database=database, revalidator=revalidator, media=media)


@pytest.fixture
def test_client(app, database: Database, user: Dict[str, Any]) -> Generator[TestClient, None, None]:
    """TestClient authenticated as ``user``."""

    def current_user() -> User:
        with database.session() as db:
            return db.get(User, user["id"])

    app.dependency_overrides[get_current_user] = current_user
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
