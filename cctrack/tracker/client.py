"""Tracker exchange client.

The tracker protocol is a single request and a single response:

1. connect to the tracker with :data:`TRACKER_ALPN`,
2. open one bidirectional stream,
3. write the encoded request and finish the send side,
4. read the response until the tracker finishes, at most
   :data:`RESPONSE_SIZE_LIMIT` bytes,
5. decode it.

Every call uses a fresh connection and closes it afterwards, whatever the
outcome. Nothing is shared between calls, so calls may run concurrently.
"""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable

from cctrack.protocol.messages import (
    Announce,
    Query,
    QueryResponse,
    Request,
    Response,
    decode_response,
    encode_request,
)
from cctrack.utils.exceptions import (
    CCTrackError,
    DecodingError,
    EncodingError,
    StreamError,
    TrackerConnectionError,
)
from cctrack.utils.logging_config import LoggingContext, get_logger

if TYPE_CHECKING:  # pragma: no cover
    from cctrack.core.content import PeerId
    from cctrack.transport.endpoint import Connection, Endpoint

# Protocol tag presented when connecting to a tracker
TRACKER_ALPN = b"n0/tracker/1"
# Upper bound for a tracker response
RESPONSE_SIZE_LIMIT = 16 * 1024

logger = get_logger(__name__)


class ExchangeState(Enum):
    """Progress of a single tracker exchange."""

    IDLE = "idle"
    CONNECTING = "connecting"
    STREAM_OPEN = "stream_open"
    REQUEST_SENT = "request_sent"
    AWAITING_RESPONSE = "awaiting_response"
    DONE = "done"
    FAILED = "failed"


class Exchange:
    """One request/response round trip with a tracker.

    An exchange runs once. ``state`` ends as DONE or FAILED.
    """

    def __init__(
        self,
        endpoint: Endpoint,
        tracker: PeerId,
        alpn: bytes,
        size_limit: int,
    ):
        self.endpoint = endpoint
        self.tracker = tracker
        self.alpn = alpn
        self.size_limit = size_limit
        self.state = ExchangeState.IDLE

    def _transition(self, state: ExchangeState) -> None:
        logger.debug("Exchange with %s: %s -> %s", self.tracker.fmt_short(), self.state.value, state.value)
        self.state = state

    async def run(
        self,
        request: Request,
        decode: Callable[[bytes], Any] | None = None,
    ) -> Any:
        """Send ``request`` and return the response.

        The raw response bytes are returned, or ``decode(bytes)`` when a
        decoder is given. Decoding is part of the exchange: a decoder error
        leaves it FAILED.

        Raises:
            TrackerConnectionError: If the tracker cannot be reached
            StreamError: On I/O failure after the connection is up
            EncodingError: If the request cannot be encoded
            ResponseTooLarge: If the response exceeds the size limit
            DecodingError: If ``decode`` rejects the response

        """
        if self.state is not ExchangeState.IDLE:
            msg = f"Exchange already ran (state {self.state.value})"
            raise RuntimeError(msg)

        connection: Connection | None = None
        try:
            payload = encode_request(request)
            self._transition(ExchangeState.CONNECTING)
            connection = await self.endpoint.connect(self.tracker, self.alpn)
            send, recv = await connection.open_bi()
            self._transition(ExchangeState.STREAM_OPEN)

            await send.write_all(payload)
            await send.finish()
            self._transition(ExchangeState.REQUEST_SENT)

            self._transition(ExchangeState.AWAITING_RESPONSE)
            response: Any = await recv.read_to_end(self.size_limit)
            if decode is not None:
                response = decode(response)
        except CCTrackError:
            self._transition(ExchangeState.FAILED)
            raise
        except asyncio.CancelledError:
            self._transition(ExchangeState.FAILED)
            raise
        except (OSError, ConnectionError, asyncio.IncompleteReadError) as e:
            self._transition(ExchangeState.FAILED)
            if connection is None:
                msg = f"Could not connect to tracker {self.tracker}: {e}"
                raise TrackerConnectionError(msg, {"tracker": str(self.tracker)}) from e
            msg = f"Stream to tracker {self.tracker} failed: {e}"
            raise StreamError(msg, {"tracker": str(self.tracker)}) from e
        finally:
            if connection is not None:
                await asyncio.shield(connection.close())

        self._transition(ExchangeState.DONE)
        return response


def _decode_query_response(data: bytes) -> QueryResponse:
    response: Response = decode_response(data)
    if not isinstance(response, QueryResponse):
        msg = f"Unexpected response variant: {type(response).__name__}"
        raise DecodingError(msg)
    return response


class TrackerClient:
    """Announce to and query trackers through an endpoint.

    The protocol tag and response size cap are fixed when the client is
    created.
    """

    def __init__(
        self,
        endpoint: Endpoint,
        alpn: bytes = TRACKER_ALPN,
        size_limit: int = RESPONSE_SIZE_LIMIT,
    ):
        """Initialize tracker client.

        Args:
            endpoint: Endpoint used to dial trackers
            alpn: Protocol tag presented to the tracker
            size_limit: Maximum accepted response size in bytes

        """
        if size_limit <= 0:
            msg = "size_limit must be positive"
            raise ValueError(msg)
        self._endpoint = endpoint
        self._alpn = bytes(alpn)
        self._size_limit = size_limit

    @property
    def endpoint(self) -> Endpoint:
        return self._endpoint

    @property
    def alpn(self) -> bytes:
        return self._alpn

    @property
    def size_limit(self) -> int:
        return self._size_limit

    def _exchange(self, tracker: PeerId) -> Exchange:
        return Exchange(self._endpoint, tracker, self._alpn, self._size_limit)

    async def announce(self, tracker: PeerId, announce: Announce) -> None:
        """Announce to ``tracker`` that a host has some content.

        The tracker's reply, if any, is read and discarded.
        """
        if not isinstance(announce, Announce):
            msg = f"Expected Announce, got {type(announce).__name__}"
            raise EncodingError(msg)
        if not announce.content:
            logger.warning("Announcing empty content set for host %s", announce.host.fmt_short())
        with LoggingContext(
            "announce",
            logger=logger,
            tracker=str(tracker),
            host=str(announce.host),
            kind=announce.kind.name.lower(),
            content_count=len(announce.content),
        ):
            await self._exchange(tracker).run(announce)

    async def query(self, tracker: PeerId, query: Query) -> QueryResponse:
        """Ask ``tracker`` which hosts have the queried content.

        Raises:
            DecodingError: If the reply is not a valid query response

        """
        if not isinstance(query, Query):
            msg = f"Expected Query, got {type(query).__name__}"
            raise EncodingError(msg)
        with LoggingContext(
            "query",
            logger=logger,
            tracker=str(tracker),
            content=str(query.content),
            complete=query.flags.complete,
            verified=query.flags.verified,
        ):
            response = await self._exchange(tracker).run(query, _decode_query_response)
            if response.content != query.content:
                logger.warning(
                    "Tracker %s answered for %s, queried %s",
                    tracker.fmt_short(),
                    response.content,
                    query.content,
                )
            logger.debug("Tracker %s returned %d host(s)", tracker.fmt_short(), len(response.hosts))
            return response


async def announce(endpoint: Endpoint, tracker: PeerId, request: Announce) -> None:
    """Announce with a default :class:`TrackerClient`."""
    await TrackerClient(endpoint).announce(tracker, request)


async def query(endpoint: Endpoint, tracker: PeerId, request: Query) -> QueryResponse:
    """Query with a default :class:`TrackerClient`."""
    return await TrackerClient(endpoint).query(tracker, request)
