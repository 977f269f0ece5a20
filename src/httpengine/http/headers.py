"""
=============================================================================
HTTP HEADER MAP
=============================================================================

HTTP allows the same field to appear on several lines:

    Accept-Encoding: gzip
    Accept-Encoding: br

A plain {name: value} dict loses the second line (or forces a lossy
comma join). Headers keeps every value, in arrival order, under ONE
canonical key per field name:

    ┌─────────────────────┬──────────────────────────────┐
    │  canonical key      │  values (ordered)            │
    ├─────────────────────┼──────────────────────────────┤
    │  "Accept-Encoding"  │  ["gzip", "br"]              │
    │  "Host"             │  ["localhost:4221"]          │
    └─────────────────────┴──────────────────────────────┘

=============================================================================
CANONICALIZATION
=============================================================================

Field names are case-insensitive (RFC 7230 3.2). Every key is rewritten
to one form before storage AND before lookup, so "content-type",
"CONTENT-TYPE" and "Content-Type" all land on the same entry:

    canonical_key("content-type")   → "Content-Type"
    canonical_key("x-FORWARDED-for") → "X-Forwarded-For"

A name holding characters outside the token grammar (e.g. a space) is
left untouched; the request parser rejects such names before they get
here.

=============================================================================
"""

from typing import Dict, Iterator, List, Optional, Tuple


def canonical_key(name: str) -> str:
    """
    Return the canonical form of a header field name.

    The first letter and every letter following a hyphen are upper-cased,
    all other letters lower-cased.
    """
    if not name or " " in name or "\t" in name:
        return name
    return "-".join(part[:1].upper() + part[1:].lower() for part in name.split("-"))


class Headers:
    """
    Ordered, multi-value, case-insensitive header container.

    Example:
        headers = Headers()
        headers.add("accept", "text/html")
        headers.add("Accept", "application/json")

        headers.get("ACCEPT")       # "text/html"
        headers.get_all("accept")   # ["text/html", "application/json"]
        list(headers.items())       # [("Accept", "text/html"),
                                    #  ("Accept", "application/json")]
    """

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._values: Dict[str, List[str]] = {}
        if initial:
            for name, value in initial.items():
                self.add(name, value)

    def add(self, name: str, value: str) -> None:
        """Append a value, keeping any existing values for the field."""
        self._values.setdefault(canonical_key(name), []).append(value)

    def set(self, name: str, value: str) -> None:
        """Replace all values of the field with a single value."""
        self._values[canonical_key(name)] = [value]

    def get(self, name: str, default: str = "") -> str:
        """
        Get the first value of a field.

        Args:
            name: Header name (any case).
            default: Returned when the field is absent.
        """
        values = self._values.get(canonical_key(name))
        return values[0] if values else default

    def get_all(self, name: str) -> List[str]:
        """All values of a field in arrival order (empty list if absent)."""
        return list(self._values.get(canonical_key(name), []))

    def remove(self, name: str) -> None:
        self._values.pop(canonical_key(name), None)

    def append_to_last(self, name: str, text: str) -> None:
        """
        Extend the most recent value of a field.

        Used for obsolete line folding, where a continuation line adds to
        the value of the header line above it.
        """
        values = self._values[canonical_key(name)]
        values[-1] = f"{values[-1]} {text}" if values[-1] else text

    def items(self) -> Iterator[Tuple[str, str]]:
        """Yield (name, value) once per stored value."""
        for name, values in self._values.items():
            for value in values:
                yield name, value

    def keys(self) -> List[str]:
        return list(self._values)

    def copy(self) -> "Headers":
        clone = Headers()
        clone._values = {name: list(values) for name, values in self._values.items()}
        return clone

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and canonical_key(name) in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Headers):
            return NotImplemented
        return self._values == other._values

    def __repr__(self) -> str:
        return f"Headers({self._values!r})"
