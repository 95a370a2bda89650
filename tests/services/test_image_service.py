import threading
from io import BytesIO
from unittest.mock import patch

import pytest
from PIL import Image

from i3f.core.exceptions import DecodeError, FeatureNotImplementedError, NotFoundError
from i3f.iiif.geometry import SizeLimits
from i3f.iiif.request import ProcessResult, parse_image_request
from i3f.services import image_service, pipeline
from i3f.services.storage import LocalStorage


class MemoryStorage:
    def __init__(self, origins: dict[str, bytes]) -> None:
        self.origins = origins
        self.derivatives: dict[str, ProcessResult] = {}
        self.fetches = 0

    def fetch_origin(self, identifier: str) -> bytes:
        self.fetches += 1
        if identifier not in self.origins:
            raise NotFoundError()
        return self.origins[identifier]

    def lookup_derivative(self, cache_key: str) -> ProcessResult | None:
        return self.derivatives.get(cache_key)

    def store_derivative(self, cache_key: str, content_type: str, data: bytes) -> None:
        self.derivatives[cache_key] = ProcessResult(content_type=content_type, data=data)


class TestHandleImagePath:
    def test_end_to_end_square_rotation(self, image_storage: LocalStorage) -> None:
        result = image_service.handle_image_path("demo.jpg/square/150,/15/color.png", image_storage)
        assert result.content_type == "image/png"
        img = Image.open(BytesIO(result.data))
        assert img.size == (184, 184)

    def test_nested_identifier(self, image_storage: LocalStorage) -> None:
        result = image_service.handle_image_path("/iiif/data%2Faaa.png/full/max/0/default.jpg", image_storage)
        assert result.content_type == "image/jpeg"
        assert Image.open(BytesIO(result.data)).size == (300, 200)

    def test_bitonal_output_is_two_valued(self, image_storage: LocalStorage) -> None:
        result = image_service.handle_image_path("demo.png/full/max/0/bitonal.png", image_storage)
        img = Image.open(BytesIO(result.data)).convert("L")
        assert {value for _, value in img.getcolors()} == {0, 255}

    def test_limits_applied(self, image_storage: LocalStorage) -> None:
        result = image_service.handle_image_path(
            "demo.png/full/max/0/default.png", image_storage, SizeLimits(max_width=150)
        )
        assert Image.open(BytesIO(result.data)).size == (150, 100)

    def test_missing_origin(self, image_storage: LocalStorage) -> None:
        with pytest.raises(NotFoundError):
            image_service.handle_image_path("nope.jpg/full/max/0/default.jpg", image_storage)

    def test_undecodable_origin(self, image_storage: LocalStorage) -> None:
        with pytest.raises(DecodeError):
            image_service.handle_image_path("broken.jpg/full/max/0/default.jpg", image_storage)

    def test_jp2_not_implemented_and_not_cached(self, image_storage: LocalStorage) -> None:
        path = "demo.png/full/max/0/default.jp2"
        with pytest.raises(FeatureNotImplementedError):
            image_service.handle_image_path(path, image_storage)
        assert image_storage.lookup_derivative(parse_image_request(path).render()) is None


class TestDerivativeCaching:
    def _origins(self, demo_image: Image.Image) -> dict[str, bytes]:
        buffer = BytesIO()
        demo_image.save(buffer, format="PNG")
        return {"demo": buffer.getvalue()}

    def test_result_is_stored_under_canonical_key(self, demo_image: Image.Image) -> None:
        mem = MemoryStorage(self._origins(demo_image))
        request = parse_image_request("demo/FULL/150,/0/default.PNG")
        result = image_service.process_image_request(request, mem)
        assert mem.derivatives == {"demo/full/150,/0/default.png": result}

    def test_cache_hit_skips_origin(self, demo_image: Image.Image) -> None:
        mem = MemoryStorage(self._origins(demo_image))
        request = parse_image_request("demo/full/150,/0/default.png")
        first = image_service.process_image_request(request, mem)
        second = image_service.process_image_request(request, mem)
        assert first == second
        assert mem.fetches == 1

    def test_cached_result_is_returned_verbatim(self) -> None:
        mem = MemoryStorage({})
        request = parse_image_request("demo/full/max/0/default.png")
        mem.derivatives[request.render()] = ProcessResult(content_type="image/png", data=b"cached")
        assert image_service.process_image_request(request, mem).data == b"cached"

    def test_different_qualities_do_not_collide(self, demo_image: Image.Image) -> None:
        mem = MemoryStorage(self._origins(demo_image))
        color = image_service.handle_image_path("demo/full/max/0/color.png", mem)
        gray = image_service.handle_image_path("demo/full/max/0/gray.png", mem)
        assert color.data != gray.data
        assert len(mem.derivatives) == 2

    def test_concurrent_requests_build_once(self, demo_image: Image.Image) -> None:
        mem = MemoryStorage(self._origins(demo_image))
        request = parse_image_request("demo/full/150,/0/default.png")
        builds = 0
        original = pipeline.render_derivative

        def _counting(*args, **kwargs):  # type: ignore[no-untyped-def]
            nonlocal builds
            builds += 1
            return original(*args, **kwargs)

        barrier = threading.Barrier(4)

        def _worker() -> None:
            barrier.wait()
            image_service.process_image_request(request, mem)

        with patch.object(pipeline, "render_derivative", side_effect=_counting):
            threads = [threading.Thread(target=_worker) for _ in range(4)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()

        assert builds == 1
        assert mem.fetches == 1
