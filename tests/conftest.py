from collections.abc import AsyncIterator
from io import BytesIO
from pathlib import Path
from unittest.mock import patch

import pytest
from httpx import ASGITransport, AsyncClient
from PIL import Image

from i3f.main import app
from i3f.services import storage
from i3f.services.storage import LocalStorage


def make_gradient(width: int = 300, height: int = 200) -> Image.Image:
    img = Image.new("RGB", (width, height))
    img.putdata([(x % 256, y % 256, (x * 3 + y) % 256) for y in range(height) for x in range(width)])
    return img


def encode_image(img: Image.Image, fmt: str = "PNG") -> bytes:
    buffer = BytesIO()
    img.save(buffer, format=fmt)
    return buffer.getvalue()


@pytest.fixture
def demo_image() -> Image.Image:
    return make_gradient()


@pytest.fixture
def image_storage(tmp_path: Path, demo_image: Image.Image) -> LocalStorage:
    images_dir = tmp_path / "images"
    (images_dir / "data").mkdir(parents=True)
    (images_dir / "demo.jpg").write_bytes(encode_image(demo_image, "JPEG"))
    (images_dir / "demo.png").write_bytes(encode_image(demo_image, "PNG"))
    (images_dir / "data" / "aaa.png").write_bytes(encode_image(demo_image, "PNG"))
    (images_dir / "broken.jpg").write_bytes(b"not an image")
    return LocalStorage(images_dir, tmp_path / "cache")


@pytest.fixture
async def client(image_storage: LocalStorage) -> AsyncIterator[AsyncClient]:
    with patch.object(storage, "_storage", image_storage):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            yield c
