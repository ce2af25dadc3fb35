from enum import Enum
from typing import Iterable


def concat_chunks(chunks: Iterable[bytes]) -> bytes:
    return b"".join(chunks)


class AggregatorState(Enum):
    OPEN = "open"
    COMPLETED = "completed"
    FAILED = "failed"


class ByteAggregator:
    """Collects response body chunks in arrival order.

    The aggregator accepts ``append`` calls until exactly one terminal
    transition happens: ``complete`` hands back the reassembled body,
    ``fail`` records the cause and drops whatever was buffered.
    """

    def __init__(self) -> None:
        self._chunks: list[bytes] = []
        self._size: int = 0
        self._state: AggregatorState = AggregatorState.OPEN
        self._failure: BaseException | None = None

    @property
    def state(self) -> AggregatorState:
        return self._state

    @property
    def failure(self) -> BaseException | None:
        return self._failure

    def __len__(self) -> int:
        return self._size

    def append(self, chunk: bytes) -> None:
        self._require_open("append")
        if not chunk:
            return
        # Transports may hand out views over buffers they reuse.
        data = bytes(chunk)
        self._chunks.append(data)
        self._size += len(data)

    def complete(self) -> bytes:
        self._require_open("complete")
        self._state = AggregatorState.COMPLETED
        body = concat_chunks(self._chunks)
        self._chunks.clear()
        return body

    def fail(self, cause: BaseException) -> None:
        self._require_open("fail")
        self._state = AggregatorState.FAILED
        self._failure = cause
        self._chunks.clear()
        self._size = 0

    def _require_open(self, transition: str) -> None:
        if self._state is not AggregatorState.OPEN:
            raise RuntimeError(f"Cannot {transition}: aggregator is already {self._state.value}.")
