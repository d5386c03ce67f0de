"""
Message protocol for computing no-fit polygons off the calling thread.

Requests and responses are plain dicts so they can cross a process boundary:

    {"type": "CALCULATE_NFP", "request_id", "A", "B", "rotationA", "rotationB", "ids"}
    -> {"type": "NFP_RESULT", "request_id", "key", "nfp"}
    -> {"type": "NFP_ERROR" | "ERROR", "request_id", "message"}

``A`` and ``B`` are outer rings as lists of [x, y] pairs in their local frames.
"""
import logging
import uuid
from concurrent.futures import ProcessPoolExecutor
from threading import Lock

from shapely.errors import ShapelyError
from shapely.geometry import Polygon

from . import minkowski_utils

logger = logging.getLogger(__name__)

CALCULATE_NFP = "CALCULATE_NFP"
NFP_RESULT = "NFP_RESULT"
NFP_ERROR = "NFP_ERROR"
ERROR = "ERROR"


class NfpWorkerError(RuntimeError):
    """Raised by the client when a worker answers with an error message."""
    def __init__(self, message, response=None):
        super().__init__(message)
        self.response = response


def nfp_key(ids, rotation_a, rotation_b):
    a_id, b_id = ids if ids else ("A", "B")
    return f"{a_id}-{b_id}-{rotation_a}-{rotation_b}"


def calculate_nfp(ring_a, ring_b, rotation_a=0.0, rotation_b=0.0):
    """Returns the NFP outer ring as a list of [x, y] pairs, or None."""
    nfp = minkowski_utils.no_fit_polygon(Polygon(ring_a), Polygon(ring_b), rotation_a, rotation_b)
    if nfp is None or nfp.is_empty:
        return None
    return [[x, y] for x, y in nfp.exterior.coords]


def handle_message(message):
    """
    Answers one request. Every failure is reported as a typed error message
    rather than raised.
    """
    request_id = message.get("request_id") if isinstance(message, dict) else None
    try:
        if message.get("type") != CALCULATE_NFP:
            return {"type": ERROR, "request_id": request_id,
                    "message": f"Unknown message type: {message.get('type')!r}"}

        rotation_a = float(message.get("rotationA", 0.0))
        rotation_b = float(message.get("rotationB", 0.0))
        nfp = calculate_nfp(message["A"], message["B"], rotation_a, rotation_b)
        if nfp is None:
            return {"type": NFP_ERROR, "request_id": request_id, "message": "NFP is empty"}

        return {"type": NFP_RESULT, "request_id": request_id,
                "key": nfp_key(message.get("ids"), rotation_a, rotation_b), "nfp": nfp}
    except (KeyError, TypeError, ValueError, ShapelyError) as e:
        return {"type": NFP_ERROR, "request_id": request_id, "message": f"{type(e).__name__}: {e}"}
    except Exception as e:
        logger.exception("NFP worker failed")
        return {"type": ERROR, "request_id": request_id, "message": f"{type(e).__name__}: {e}"}


class NfpWorkerClient:
    """
    Submits NFP requests to a process pool. Each request gets its own id and
    future, so any number of requests may be outstanding at once.
    """
    def __init__(self, max_workers=None, executor=None):
        self._owns_executor = executor is None
        self._executor = executor or ProcessPoolExecutor(max_workers=max_workers)
        self._pending = {}
        self._lock = Lock()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.shutdown()

    def submit(self, ring_a, ring_b, rotation_a=0.0, rotation_b=0.0, ids=None):
        """Queues a request and returns its request id."""
        request_id = uuid.uuid4().hex
        message = {
            "type": CALCULATE_NFP,
            "request_id": request_id,
            "A": [list(p[:2]) for p in ring_a],
            "B": [list(p[:2]) for p in ring_b],
            "rotationA": rotation_a,
            "rotationB": rotation_b,
            "ids": list(ids) if ids else None,
        }
        future = self._executor.submit(handle_message, message)
        with self._lock:
            self._pending[request_id] = future
        return request_id

    def pending(self):
        with self._lock:
            return list(self._pending)

    def result(self, request_id, timeout=None):
        """
        Waits for a request and returns its NFP ring. Raises NfpWorkerError
        when the worker reported an error.
        """
        with self._lock:
            future = self._pending.pop(request_id)
        response = future.result(timeout=timeout)
        if response.get("request_id") != request_id:
            raise NfpWorkerError(f"Response for {response.get('request_id')} delivered to {request_id}", response)
        if response["type"] != NFP_RESULT:
            raise NfpWorkerError(response.get("message", "NFP calculation failed"), response)
        return response["nfp"]

    def calculate_nfp(self, ring_a, ring_b, rotation_a=0.0, rotation_b=0.0, ids=None, timeout=None):
        return self.result(self.submit(ring_a, ring_b, rotation_a, rotation_b, ids), timeout=timeout)

    def shutdown(self, wait=True):
        with self._lock:
            for future in self._pending.values():
                future.cancel()
            self._pending.clear()
        if self._owns_executor:
            self._executor.shutdown(wait=wait)
