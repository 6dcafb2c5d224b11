"""Content specifiers.

Users name content in one of three ways:

- a bare hash, which always means a raw blob,
- a hash and format (``<hex>`` or ``s<hex>``),
- a blob ticket, which also names a node that hosts the content.

Parsing tries the forms in exactly that order and keeps the first one that
succeeds. A string that is valid as more than one form resolves to the
earliest. The order is visible to users, so it must not change.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Union

from cctrack.core.content import Hash, HashAndFormat, PeerId
from cctrack.core.ticket import BlobTicket, SocketAddr
from cctrack.protocol.messages import Announce, AnnounceKind
from cctrack.utils.exceptions import HostRequiredError, SpecifierParseError
from cctrack.utils.logging_config import get_logger

logger = get_logger(__name__)

SpecifierValue = Union[Hash, HashAndFormat, BlobTicket]


class SpecifierKind(Enum):
    """Which form a content specifier was given in."""

    HASH = "hash"
    HASH_AND_FORMAT = "hash_and_format"
    TICKET = "ticket"


# Parse attempts in precedence order
_PARSERS: tuple[tuple[SpecifierKind, Callable[[str], SpecifierValue]], ...] = (
    (SpecifierKind.HASH, Hash.from_str),
    (SpecifierKind.HASH_AND_FORMAT, HashAndFormat.from_str),
    (SpecifierKind.TICKET, BlobTicket.from_str),
)


@dataclass(frozen=True)
class ContentSpecifier:
    """Content named by a hash, a hash and format, or a ticket."""

    kind: SpecifierKind
    value: SpecifierValue

    @classmethod
    def parse(cls, text: str) -> ContentSpecifier:
        return parse_specifier(text)

    @classmethod
    def from_value(cls, value: SpecifierValue) -> ContentSpecifier:
        """Wrap an already parsed hash, content address or ticket."""
        if isinstance(value, Hash):
            return cls(SpecifierKind.HASH, value)
        if isinstance(value, HashAndFormat):
            return cls(SpecifierKind.HASH_AND_FORMAT, value)
        if isinstance(value, BlobTicket):
            return cls(SpecifierKind.TICKET, value)
        msg = f"Not a content specifier: {type(value).__name__}"
        raise TypeError(msg)

    def hash_and_format(self) -> HashAndFormat:
        return resolve_address(self)

    def host(self) -> PeerId | None:
        return resolve_host(self)

    def __str__(self) -> str:
        return str(self.value)


def parse_specifier(text: str) -> ContentSpecifier:
    """Parse a content specifier, trying hash, then hash and format, then ticket.

    Raises:
        SpecifierParseError: If the text matches none of the forms

    """
    text = text.strip()
    errors: dict[str, str] = {}
    for kind, parse in _PARSERS:
        try:
            value = parse(text)
        except ValueError as e:
            errors[kind.value] = str(e)
            continue
        return ContentSpecifier(kind, value)
    msg = f"Invalid content specifier: {text!r}"
    raise SpecifierParseError(msg, errors)


def resolve_address(spec: ContentSpecifier) -> HashAndFormat:
    """Content address named by a specifier. A bare hash is a raw blob."""
    value = spec.value
    if spec.kind is SpecifierKind.HASH:
        return HashAndFormat.raw(value)  # type: ignore[arg-type]
    if spec.kind is SpecifierKind.HASH_AND_FORMAT:
        return value  # type: ignore[return-value]
    return value.hash_and_format()  # type: ignore[union-attr]


def resolve_host(spec: ContentSpecifier) -> PeerId | None:
    """Node hosting the content. Only tickets name one."""
    if spec.kind is SpecifierKind.TICKET:
        return spec.value.node.node_id  # type: ignore[union-attr]
    return None


def plan_announces(
    specifiers: Iterable[ContentSpecifier],
    host: PeerId | None,
    kind: AnnounceKind,
) -> list[Announce]:
    """Build the announcements for a set of specifiers.

    With an explicit ``host`` a single announcement covers all content.
    Without one every specifier must be a ticket, and content is grouped by
    the host each ticket names.

    Raises:
        HostRequiredError: If there is no host and a specifier is not a ticket

    """
    specifiers = list(specifiers)
    if host is not None:
        content = frozenset(resolve_address(spec) for spec in specifiers)
        return [Announce(host=host, content=content, kind=kind)]

    by_host: dict[PeerId, set[HashAndFormat]] = defaultdict(set)
    for spec in specifiers:
        spec_host = resolve_host(spec)
        if spec_host is None:
            msg = f"Content {spec} is not a ticket, an explicit host is required"
            raise HostRequiredError(msg, {"content": str(spec)})
        by_host[spec_host].add(resolve_address(spec))

    if not by_host:
        msg = "No content given and no host to announce"
        raise HostRequiredError(msg)

    announces = [
        Announce(host=spec_host, content=frozenset(content), kind=kind)
        for spec_host, content in by_host.items()
    ]
    logger.debug("Planned %d announce(s) for %d specifier(s)", len(announces), len(specifiers))
    return announces


def ticket_addresses(specifiers: Iterable[ContentSpecifier]) -> dict[PeerId, list[SocketAddr]]:
    """Direct addresses of the hosts named by ticket specifiers."""
    addresses: dict[PeerId, list[SocketAddr]] = {}
    for spec in specifiers:
        if spec.kind is not SpecifierKind.TICKET:
            continue
        node = spec.value.node  # type: ignore[union-attr]
        known = addresses.setdefault(node.node_id, [])
        for addr in node.sorted_addresses():
            if addr not in known:
                known.append(addr)
    return addresses
