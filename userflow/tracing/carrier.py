"""
Message Carrier.

Header bag attached to an asynchronous message (or an RPC/HTTP call) that
transports a causal context next to an opaque payload. Keys are unique and
matched case-insensitively; each key holds an ordered list of values.
"""

from collections.abc import Iterable, Iterator, Mapping


class MessageCarrier:
    """Mapping of header name to an ordered sequence of string values."""

    def __init__(self, headers: Mapping[str, str | Iterable[str]] | None = None) -> None:
        self._values: dict[str, list[str]] = {}
        for key, value in (headers or {}).items():
            if isinstance(value, str):
                self.add(key, value)
            else:
                for item in value:
                    self.add(key, item)

    @classmethod
    def from_headers(cls, headers: Mapping[str, str] | Iterable[tuple[str, str]] | None) -> "MessageCarrier":
        """
        Build a carrier from transport headers.

        Accepts a mapping (NATS, HTTP) or a sequence of pairs (gRPC metadata).
        Repeated keys keep their order.
        """
        carrier = cls()
        if headers is None:
            return carrier
        pairs = headers.items() if isinstance(headers, Mapping) else headers
        for key, value in pairs:
            if isinstance(value, bytes):
                continue
            carrier.add(key, value)
        return carrier

    @staticmethod
    def _normalize(key: str) -> str:
        return key.lower()

    def get(self, key: str) -> list[str] | None:
        values = self._values.get(self._normalize(key))
        return list(values) if values else None

    def get_first(self, key: str) -> str | None:
        values = self._values.get(self._normalize(key))
        return values[0] if values else None

    def set(self, key: str, value: str) -> None:
        """Replace all values of key with a single value."""
        self._values[self._normalize(key)] = [value]

    def add(self, key: str, value: str) -> None:
        """Append a value to key, keeping previous ones."""
        self._values.setdefault(self._normalize(key), []).append(value)

    def keys(self) -> list[str]:
        return list(self._values)

    def to_headers(self) -> dict[str, str]:
        """Flatten to single-valued headers, joining repeated values with commas."""
        return {key: ",".join(values) for key, values in self._values.items()}

    def to_metadata(self) -> tuple[tuple[str, str], ...]:
        """Flatten to gRPC metadata pairs, one pair per value."""
        return tuple((key, value) for key, values in self._values.items() for value in values)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self._normalize(key) in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MessageCarrier):
            return NotImplemented
        return self._values == other._values

    def __repr__(self) -> str:
        return f"MessageCarrier({self._values!r})"
