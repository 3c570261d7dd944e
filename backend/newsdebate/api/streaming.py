"""
NDJSON streaming response.

Starlette's StreamingResponse sends the status line before the first chunk
is produced, so it can't turn an early upstream failure into a 502. This
response hands the raw ASGI `send` to a producer through an ASGIStreamSink
instead; the sink commits status and headers only when the first frame is
written.

It is also the top of the request for a stream: whatever the producer
raises ends up here, and the client always gets a terminal frame (or a
structured error response if nothing was sent yet).
"""

import logging
from collections.abc import Awaitable, Callable

from starlette.responses import Response
from starlette.types import Receive, Scope, Send

from newsdebate.exceptions import SinkClosedError
from newsdebate.services.streaming.relay import terminate_stream
from newsdebate.services.streaming.sink import NDJSON_MEDIA_TYPE, ASGIStreamSink, StreamSink

logger = logging.getLogger(__name__)

StreamProducer = Callable[[StreamSink], Awaitable[object]]


class NDJSONStreamResponse(Response):
    media_type = NDJSON_MEDIA_TYPE

    def __init__(self, producer: StreamProducer):
        super().__init__(status_code=200, media_type=self.media_type)
        self.producer = producer

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        sink = ASGIStreamSink(send)
        try:
            await self.producer(sink)
        except SinkClosedError as e:
            logger.info(f"Stream abandoned: {e.message}")
        except Exception as e:
            logger.exception(f"Stream failed: {e}")
            await terminate_stream(sink, e)
        finally:
            await sink.close()
