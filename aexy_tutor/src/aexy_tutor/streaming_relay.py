"""
Streaming Relay

Forwards a model reply to a client as it is generated.

Each fragment is emitted as soon as it arrives, in arrival order, with no
batching. Once the upstream stream is exhausted a single end signal
follows. A stream that fails part-way gets an error signal instead of the
end signal, so "end" always means the reply completed.

Emit callbacks return False when the connection is gone; the relay then
stops forwarding. The upstream generator is closed but the model call
itself is not cancelled.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Awaitable, Callable

logger = logging.getLogger(__name__)

EmitChunk = Callable[[str], Awaitable[bool]]
EmitEnd = Callable[[], Awaitable[bool]]
EmitError = Callable[[Exception], Awaitable[bool]]


class RelayOutcome(Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    DETACHED = "detached"


@dataclass
class RelayResult:
    """What happened to one relayed reply."""
    outcome: RelayOutcome
    chunk_count: int = 0
    text: str = ""


async def _close_upstream(stream: AsyncIterator[str]):
    aclose = getattr(stream, "aclose", None)
    if aclose is None:
        return
    try:
        await aclose()
    except Exception as e:
        logger.debug(f"[StreamingRelay] Ignoring error while closing upstream: {e}")


async def relay_stream(
    stream: AsyncIterator[str],
    emit_chunk: EmitChunk,
    emit_end: EmitEnd,
    emit_error: EmitError
) -> RelayResult:
    """
    Consume `stream` once, forwarding every fragment.

    Args:
        stream: Async iterator of text fragments from the provider
        emit_chunk: Called once per non-empty fragment
        emit_end: Called exactly once after the last fragment
        emit_error: Called instead of emit_end if the stream raises

    Returns:
        RelayResult with the outcome, number of chunks and full text
    """
    chunk_count = 0
    full_text = ""
    iterator = stream.__aiter__()

    while True:
        # Only upstream failures are caught here; sink errors propagate
        try:
            chunk = await iterator.__anext__()
        except StopAsyncIteration:
            break
        except Exception as e:
            logger.error(f"❌ [StreamingRelay] Upstream stream failed after {chunk_count} chunks: {e}")
            await emit_error(e)
            return RelayResult(RelayOutcome.FAILED, chunk_count, full_text)

        if not chunk:
            continue
        full_text += chunk
        chunk_count += 1
        try:
            delivered = await emit_chunk(chunk)
        except BaseException:
            await _close_upstream(iterator)
            raise
        if not delivered:
            logger.info(f"[StreamingRelay] Client gone after {chunk_count} chunks, stop forwarding")
            await _close_upstream(iterator)
            return RelayResult(RelayOutcome.DETACHED, chunk_count, full_text)

    if not await emit_end():
        return RelayResult(RelayOutcome.DETACHED, chunk_count, full_text)
    return RelayResult(RelayOutcome.COMPLETED, chunk_count, full_text)
