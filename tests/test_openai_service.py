import asyncio

from compat_gateway.engine.auth import StaticAuth
from compat_gateway.engine.types import Completed, OutputTextDelta, Prompt
from compat_gateway.message_processor import PromptPayload
from compat_gateway.services.openai_service import ChatCompletionService
from compat_gateway.services.stream_aggregator import StreamingHandle
from compat_gateway.state import AppState


class LongStreamExecutor:
    """Streams many deltas and records when the stream gets closed."""

    def __init__(self, count=200):
        self.count = count
        self.closed = False

    async def complete(self, payload):
        raise AssertionError("complete should not be called")

    async def stream(self, payload):
        async def stream():
            try:
                for i in range(self.count):
                    yield OutputTextDelta(str(i))
                yield Completed(response_id="resp_long")
            finally:
                self.closed = True

        return StreamingHandle(response_model=payload.model, stream=stream())


def _payload():
    return PromptPayload(model="gpt-5", prompt=Prompt())


async def test_released_stream_stops_producer_without_reading_body(settings):
    executor = LongStreamExecutor()
    service = ChatCompletionService(AppState(settings, StaticAuth(True), executor))

    lines, channel = await service.stream_response(_payload())
    await asyncio.sleep(0.05)
    assert len(service._background_tasks) == 1

    # body is dropped before the first read
    service.release_stream(channel)
    await asyncio.wait_for(asyncio.gather(*service._background_tasks), timeout=1)
    await asyncio.sleep(0)

    assert executor.closed is True
    assert not service._background_tasks
    assert channel.closed


async def test_consumed_stream_ends_with_done(settings):
    executor = LongStreamExecutor(count=3)
    service = ChatCompletionService(AppState(settings, StaticAuth(True), executor))

    lines, channel = await service.stream_response(_payload())
    received = [line async for line in lines]
    service.release_stream(channel)

    assert received[-1] == "data: [DONE]\n\n"
    assert len(received) == 5
    assert executor.closed is True
