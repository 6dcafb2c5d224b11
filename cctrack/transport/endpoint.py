"""Connection-oriented transport for node to node protocols.

An :class:`Endpoint` dials peers by node id and multiplexes protocols by a
protocol tag (ALPN) presented when the connection is set up. Each connection
carries exactly one bidirectional stream. The send side is half-closed to mark
the end of a message, so no length prefix is needed.

Connection setup runs a small handshake over TCP. Both sides send::

    u8      tag length
    bytes   tag
    32      node id

The dialing side checks that the acceptor speaks the same tag and that its
node id is the one that was dialed.
"""

from __future__ import annotations

import asyncio
import contextlib
import ipaddress
import logging
from typing import Awaitable, Callable, Iterable, Mapping

from cctrack.core.content import PEER_ID_SIZE, PeerId
from cctrack.core.ticket import SocketAddr
from cctrack.utils.exceptions import (
    ConfigurationError,
    ResponseTooLarge,
    StreamError,
    TrackerConnectionError,
)

logger = logging.getLogger(__name__)

MAX_ALPN_LENGTH = 255
READ_CHUNK_SIZE = 64 * 1024

ConnectionHandler = Callable[["Connection"], Awaitable[None]]


def parse_socket_addr(text: str) -> SocketAddr:
    """Parse ``host:port`` or ``[ipv6]:port``.

    Raises:
        ConfigurationError: If the address has no valid port

    """
    host, sep, port = text.strip().rpartition(":")
    if not sep or not host:
        msg = f"Invalid address (expected host:port): {text!r}"
        raise ConfigurationError(msg)
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        port_number = int(port)
    except ValueError as e:
        msg = f"Invalid port in address {text!r}"
        raise ConfigurationError(msg) from e
    if not 0 < port_number <= 0xFFFF:
        msg = f"Port out of range in address {text!r}"
        raise ConfigurationError(msg)
    return (host, port_number)


def format_socket_addr(addr: SocketAddr) -> str:
    host, port = addr
    with contextlib.suppress(ValueError):
        if ipaddress.ip_address(host).version == 6:
            return f"[{host}]:{port}"
    return f"{host}:{port}"


class AddressBook:
    """Known network addresses per node id.

    Addresses are dialed in the order they were added.
    """

    def __init__(self, entries: Mapping[PeerId, Iterable[SocketAddr]] | None = None):
        """Initialize address book.

        Args:
            entries: Initial addresses per node

        """
        self._addresses: dict[PeerId, list[SocketAddr]] = {}
        for peer, addrs in (entries or {}).items():
            self.add(peer, addrs)

    @classmethod
    def from_strings(cls, entries: Mapping[str, Iterable[str]]) -> AddressBook:
        """Build an address book from ``{node id: ["host:port", ...]}``.

        Raises:
            ConfigurationError: For an invalid node id or address

        """
        book = cls()
        for node, addrs in entries.items():
            try:
                peer = PeerId.from_str(node)
            except ValueError as e:
                msg = f"Invalid node id in address book: {node!r}"
                raise ConfigurationError(msg) from e
            book.add(peer, (parse_socket_addr(addr) for addr in addrs))
        return book

    def add(self, peer: PeerId, addrs: Iterable[SocketAddr]) -> None:
        known = self._addresses.setdefault(peer, [])
        for host, port in addrs:
            addr = (str(host), int(port))
            if addr not in known:
                known.append(addr)

    def get(self, peer: PeerId) -> list[SocketAddr]:
        return list(self._addresses.get(peer, ()))

    def __contains__(self, peer: object) -> bool:
        return bool(self._addresses.get(peer))  # type: ignore[arg-type]

    def __len__(self) -> int:
        return len(self._addresses)


def _encode_handshake(alpn: bytes, node_id: PeerId) -> bytes:
    if not alpn or len(alpn) > MAX_ALPN_LENGTH:
        msg = f"Protocol tag must be 1 to {MAX_ALPN_LENGTH} bytes"
        raise TrackerConnectionError(msg, {"alpn": alpn})
    return bytes([len(alpn)]) + alpn + node_id.key


async def _read_handshake(reader: asyncio.StreamReader) -> tuple[bytes, PeerId]:
    length = (await reader.readexactly(1))[0]
    alpn = await reader.readexactly(length)
    node_id = PeerId(await reader.readexactly(PEER_ID_SIZE))
    return alpn, node_id


class SendStream:
    """Send side of a bidirectional stream."""

    def __init__(self, writer: asyncio.StreamWriter):
        self._writer = writer
        self.finished = False

    async def write_all(self, data: bytes) -> None:
        """Write the whole payload, waiting for the transport to take it."""
        if self.finished:
            msg = "Stream already finished"
            raise StreamError(msg)
        try:
            self._writer.write(data)
            await self._writer.drain()
        except (OSError, ConnectionError) as e:
            msg = f"Failed to write to stream: {e}"
            raise StreamError(msg) from e

    async def finish(self) -> None:
        """Half-close the send side. The peer sees end of stream."""
        if self.finished:
            return
        try:
            if self._writer.can_write_eof():
                self._writer.write_eof()
            await self._writer.drain()
        except (OSError, ConnectionError) as e:
            msg = f"Failed to finish stream: {e}"
            raise StreamError(msg) from e
        self.finished = True


class RecvStream:
    """Receive side of a bidirectional stream."""

    def __init__(self, reader: asyncio.StreamReader, read_timeout: float):
        self._reader = reader
        self.read_timeout = read_timeout

    async def read_to_end(self, limit: int) -> bytes:
        """Read until the peer finishes its send side.

        At most ``limit + 1`` bytes are ever buffered. A payload of exactly
        ``limit`` bytes followed by end of stream is accepted.

        Raises:
            ResponseTooLarge: If the peer sends more than ``limit`` bytes
            StreamError: On I/O errors, or if the peer neither sends nor
                closes within ``read_timeout``

        """
        buffer = bytearray()
        while True:
            want = min(READ_CHUNK_SIZE, limit + 1 - len(buffer))
            try:
                chunk = await asyncio.wait_for(
                    self._reader.read(want),
                    timeout=self.read_timeout,
                )
            except asyncio.TimeoutError as e:
                msg = f"Stream not finished after {self.read_timeout}s ({len(buffer)} bytes read)"
                raise StreamError(msg, {"bytes_read": len(buffer)}) from e
            except (OSError, ConnectionError) as e:
                msg = f"Failed to read from stream: {e}"
                raise StreamError(msg) from e
            if not chunk:
                return bytes(buffer)
            buffer += chunk
            if len(buffer) > limit:
                msg = f"Response exceeds {limit} bytes"
                raise ResponseTooLarge(msg, {"limit": limit})


class Connection:
    """An established, authenticated connection to one remote node."""

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        remote_node_id: PeerId,
        alpn: bytes,
        read_timeout: float,
    ):
        """Initialize connection.

        Args:
            reader: Stream reader of the underlying socket
            writer: Stream writer of the underlying socket
            remote_node_id: Node id presented by the remote side
            alpn: Protocol tag both sides agreed on
            read_timeout: Per read timeout for the receive side

        """
        self._reader = reader
        self._writer = writer
        self.remote_node_id = remote_node_id
        self.alpn = alpn
        self.read_timeout = read_timeout
        self._stream_opened = False
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def local_address(self) -> SocketAddr:
        """Local (host, port) the underlying socket is bound to."""
        sockname = self._writer.get_extra_info("sockname")
        return sockname[0], sockname[1]

    def _take_stream(self) -> tuple[SendStream, RecvStream]:
        if self._closed:
            msg = "Connection is closed"
            raise TrackerConnectionError(msg)
        if self._stream_opened:
            msg = "Connection carries a single stream, already opened"
            raise TrackerConnectionError(msg)
        self._stream_opened = True
        return SendStream(self._writer), RecvStream(self._reader, self.read_timeout)

    async def open_bi(self) -> tuple[SendStream, RecvStream]:
        """Open the bidirectional stream of this connection (dialing side)."""
        return self._take_stream()

    async def accept_bi(self) -> tuple[SendStream, RecvStream]:
        """Accept the bidirectional stream of this connection (accepting side)."""
        return self._take_stream()

    async def close(self) -> None:
        """Close the connection. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except (OSError, ConnectionError) as e:
            logger.debug("Error while closing connection to %s: %s", self.remote_node_id.fmt_short(), e)

    async def __aenter__(self) -> Connection:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class Endpoint:
    """Local node: dials other nodes and accepts connections from them."""

    def __init__(
        self,
        node_id: PeerId,
        address_book: AddressBook | None = None,
        connect_timeout: float = 10.0,
        read_timeout: float = 30.0,
        bind_host: str | None = None,
        bind_port: int = 0,
    ):
        """Initialize endpoint.

        Args:
            node_id: Identity presented to remote nodes
            address_book: Where to find remote nodes
            connect_timeout: Timeout for TCP connect plus handshake, per address
            read_timeout: Timeout for a single read on a stream
            bind_host: Local address outgoing connections bind to
            bind_port: Local port outgoing connections bind to, 0 for any

        """
        self.node_id = node_id
        self.address_book = address_book or AddressBook()
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.bind_host = bind_host
        self.bind_port = bind_port

    def _local_addr(self, addr: SocketAddr) -> tuple[str, int] | None:
        if self.bind_host is None and not self.bind_port:
            return None
        host = self.bind_host
        if host is None:
            host = "::" if ":" in addr[0] else "0.0.0.0"  # nosec B104 - bind to any interface of the target family
        return host, self.bind_port

    async def connect(self, peer: PeerId, alpn: bytes) -> Connection:
        """Connect to ``peer`` speaking protocol ``alpn``.

        Known addresses are tried in order until one completes the handshake.

        Raises:
            TrackerConnectionError: If no address yields a connection

        """
        hello = _encode_handshake(alpn, self.node_id)
        addrs = self.address_book.get(peer)
        if not addrs:
            msg = f"No known address for node {peer}"
            raise TrackerConnectionError(msg, {"node_id": str(peer)})

        errors: dict[str, str] = {}
        for addr in addrs:
            try:
                connection = await asyncio.wait_for(
                    self._dial(peer, addr, alpn, hello),
                    timeout=self.connect_timeout,
                )
            except asyncio.TimeoutError:
                errors[format_socket_addr(addr)] = f"timed out after {self.connect_timeout}s"
            except (OSError, ConnectionError, asyncio.IncompleteReadError) as e:
                errors[format_socket_addr(addr)] = str(e) or type(e).__name__
            except TrackerConnectionError as e:
                errors[format_socket_addr(addr)] = e.message
            else:
                logger.debug(
                    "Connected to %s at %s (%s)",
                    peer.fmt_short(),
                    format_socket_addr(addr),
                    alpn.decode("ascii", "replace"),
                )
                return connection
            logger.debug("Dialing %s at %s failed: %s", peer.fmt_short(), format_socket_addr(addr), errors[format_socket_addr(addr)])

        msg = f"Could not connect to node {peer}"
        raise TrackerConnectionError(msg, {"node_id": str(peer), "errors": errors})

    async def _dial(
        self,
        peer: PeerId,
        addr: SocketAddr,
        alpn: bytes,
        hello: bytes,
    ) -> Connection:
        reader, writer = await asyncio.open_connection(
            addr[0],
            addr[1],
            local_addr=self._local_addr(addr),
        )
        try:
            writer.write(hello)
            await writer.drain()
            remote_alpn, remote_id = await _read_handshake(reader)
            if remote_alpn != alpn:
                msg = f"Protocol mismatch: expected {alpn!r}, got {remote_alpn!r}"
                raise TrackerConnectionError(msg, {"alpn": remote_alpn})
            if remote_id != peer:
                msg = f"Node id mismatch: dialed {peer}, got {remote_id}"
                raise TrackerConnectionError(msg, {"node_id": str(remote_id)})
        except BaseException:
            writer.close()
            raise
        return Connection(reader, writer, remote_id, alpn, self.read_timeout)

    async def listen(
        self,
        host: str,
        port: int,
        alpn: bytes,
        handler: ConnectionHandler,
    ) -> asyncio.Server:
        """Accept connections for protocol ``alpn`` and pass them to ``handler``.

        Connections presenting another protocol tag are dropped. The
        connection is closed once the handler returns.
        """
        hello = _encode_handshake(alpn, self.node_id)

        async def _on_connect(reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
            try:
                remote_alpn, remote_id = await asyncio.wait_for(
                    _read_handshake(reader),
                    timeout=self.connect_timeout,
                )
            except (asyncio.TimeoutError, asyncio.IncompleteReadError, OSError, ValueError) as e:
                logger.debug("Dropping connection with failed handshake: %s", e)
                writer.close()
                return
            if remote_alpn != alpn:
                logger.debug("Dropping connection for unknown protocol %r", remote_alpn)
                writer.close()
                return
            writer.write(hello)
            connection = Connection(reader, writer, remote_id, alpn, self.read_timeout)
            try:
                await writer.drain()
                await handler(connection)
            except Exception:
                logger.exception("Error handling connection from %s", remote_id.fmt_short())
            finally:
                await connection.close()

        server = await asyncio.start_server(_on_connect, host=host, port=port)
        for sock in server.sockets or ():
            logger.info("Listening for %s on %s", alpn.decode("ascii", "replace"), format_socket_addr(sock.getsockname()[:2]))
        return server
