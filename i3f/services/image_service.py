import threading
import weakref
from collections.abc import Iterator
from contextlib import contextmanager

import structlog

from i3f.iiif.geometry import NO_LIMITS, SizeLimits
from i3f.iiif.request import ImageRequest, ProcessResult, parse_image_request
from i3f.services import codec, encoder, pipeline
from i3f.services.storage import Storage

logger = structlog.get_logger()


class _KeyLock:
    # plain locks cannot be weakly referenced
    __slots__ = ("lock", "__weakref__")

    def __init__(self) -> None:
        self.lock = threading.Lock()


_locks: "weakref.WeakValueDictionary[str, _KeyLock]" = weakref.WeakValueDictionary()
_locks_guard = threading.Lock()


@contextmanager
def _key_lock(cache_key: str) -> Iterator[None]:
    with _locks_guard:
        key_lock = _locks.get(cache_key)
        if key_lock is None:
            key_lock = _KeyLock()
            _locks[cache_key] = key_lock
    with key_lock.lock:
        yield


def process_image_request(
    request: ImageRequest,
    storage: Storage,
    limits: SizeLimits = NO_LIMITS,
) -> ProcessResult:
    cache_key = request.render()
    cached = storage.lookup_derivative(cache_key)
    if cached is not None:
        logger.debug("derivative_cache_hit", key=cache_key)
        return cached

    with _key_lock(cache_key):
        # another thread may have built it while we waited
        cached = storage.lookup_derivative(cache_key)
        if cached is not None:
            logger.debug("derivative_cache_hit", key=cache_key, after_wait=True)
            return cached

        source = storage.fetch_origin(request.identifier)
        img = codec.decode(source)
        img = pipeline.render_derivative(img, request, limits)
        result = encoder.encode(img, request.format)
        storage.store_derivative(cache_key, result.content_type, result.data)

    logger.info("derivative_built", key=cache_key, content_type=result.content_type, size=len(result.data))
    return result


def handle_image_path(path: str, storage: Storage, limits: SizeLimits = NO_LIMITS) -> ProcessResult:
    request = parse_image_request(path)
    return process_image_request(request, storage, limits)
