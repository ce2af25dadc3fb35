import random

import pytest

from httpspy.aggregator import AggregatorState, ByteAggregator, concat_chunks


def _split(data: bytes, rng: random.Random) -> list[bytes]:
    chunks = []
    pos = 0
    while pos < len(data):
        size = rng.randint(1, 17)
        chunks.append(data[pos:pos + size])
        pos += size
    return chunks


def test_concat_chunks_preserves_order():
    assert concat_chunks([b"c1", b"c2", b"", b"c3"]) == b"c1c2c3"


def test_concat_chunks_of_nothing_is_empty():
    assert concat_chunks([]) == b""


@pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
def test_reassembly_reproduces_original_for_arbitrary_boundaries(seed):
    rng = random.Random(seed)
    original = bytes(rng.getrandbits(8) for _ in range(1024))

    aggregator = ByteAggregator()
    for chunk in _split(original, rng):
        aggregator.append(chunk)

    assert len(aggregator) == len(original)
    assert aggregator.complete() == original
    assert aggregator.state is AggregatorState.COMPLETED


def test_append_copies_reused_buffers():
    aggregator = ByteAggregator()
    scratch = bytearray(b"first")
    aggregator.append(memoryview(scratch))
    scratch[:] = b"XXXXX"
    aggregator.append(b"-second")

    assert aggregator.complete() == b"first-second"


def test_fail_records_cause_and_drops_chunks():
    aggregator = ByteAggregator()
    aggregator.append(b"partial")
    cause = ConnectionResetError("reset")

    aggregator.fail(cause)

    assert aggregator.state is AggregatorState.FAILED
    assert aggregator.failure is cause
    assert len(aggregator) == 0


@pytest.mark.parametrize("terminal", ["complete", "fail"])
def test_only_one_terminal_transition_is_allowed(terminal):
    aggregator = ByteAggregator()
    if terminal == "complete":
        aggregator.complete()
    else:
        aggregator.fail(RuntimeError("boom"))

    with pytest.raises(RuntimeError, match="already"):
        aggregator.append(b"late")
    with pytest.raises(RuntimeError, match="already"):
        aggregator.complete()
    with pytest.raises(RuntimeError, match="already"):
        aggregator.fail(RuntimeError("again"))
