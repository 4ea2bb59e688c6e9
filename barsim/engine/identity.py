"""
Call-site identity for indicator invocations.

A ``CacheKey`` names one logical indicator call: the key of the calling
indicator (if any), a site token naming the formula, and one contribution
per meaningful argument.  Keys are content-addressed 64-bit digests, so a
formula re-invoked every bar with the same inputs lands on the same cache
entry, while any change of parameter, input series, site or parent lands
elsewhere.  Digest collisions are possible in principle and accepted, as
in any content-addressed cache.
"""
from __future__ import annotations

import hashlib
import numbers
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple

_NO_PARENT = b"\x00" * 8


def _fold(*parts: bytes) -> int:
    h = hashlib.blake2b(digest_size=8)
    for part in parts:
        h.update(len(part).to_bytes(4, "big"))
        h.update(part)
    return int.from_bytes(h.digest(), "big")


def _as_bytes(value: int) -> bytes:
    return value.to_bytes(8, "big")


def contribution(value: Any) -> int:
    """Reduce one indicator argument to a stable 64-bit hash.

    Series, instruments and keys contribute their identity; scalars a digest
    of their type-tagged representation; tuples and lists the fold of their
    items.
    """
    if isinstance(value, CacheKey):
        return value.digest
    identity = getattr(value, "identity", None)
    if isinstance(identity, int):
        return identity
    if value is None:
        return _fold(b"none")
    if isinstance(value, bool):
        return _fold(b"bool", b"1" if value else b"0")
    if isinstance(value, numbers.Integral):
        return _fold(b"int", str(int(value)).encode())
    if isinstance(value, numbers.Real):
        return _fold(b"float", repr(float(value)).encode())
    if isinstance(value, str):
        return _fold(b"str", value.encode("utf-8"))
    if isinstance(value, (tuple, list)):
        return _fold(b"seq", *(_as_bytes(contribution(v)) for v in value))
    raise TypeError(f"cannot derive a cache contribution from {type(value).__name__}")


@dataclass(frozen=True, eq=False)
class CacheKey:
    """Composite identity of one indicator invocation.

    Equality and hashing use ``digest`` only; ``parent``, ``site`` and
    ``contributions`` are kept for inspection and ``repr``.
    """
    parent: Optional["CacheKey"]
    site: str
    contributions: Tuple[int, ...]
    digest: int = field(init=False)

    def __post_init__(self) -> None:
        parent = _as_bytes(self.parent.digest) if self.parent is not None else _NO_PARENT
        digest = _fold(
            b"key",
            parent,
            self.site.encode("utf-8"),
            *(_as_bytes(c) for c in self.contributions),
        )
        object.__setattr__(self, "digest", digest)

    @property
    def depth(self) -> int:
        """Number of ancestors."""
        depth, node = 0, self.parent
        while node is not None:
            depth, node = depth + 1, node.parent
        return depth

    @property
    def path(self) -> str:
        """Site tokens from the root call down to this one."""
        sites = []
        node: Optional[CacheKey] = self
        while node is not None:
            sites.append(node.site)
            node = node.parent
        return "/".join(reversed(sites))

    def child(self, site: str, *args: Any, tag: Any = None) -> "CacheKey":
        """Key of a nested invocation made on behalf of this one."""
        return make_key(self, site, *args, tag=tag)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CacheKey):
            return NotImplemented
        return self.digest == other.digest

    def __hash__(self) -> int:
        return self.digest

    def __repr__(self) -> str:
        return f"CacheKey({self.path!r}, {self.digest:016x})"


def make_key(parent: Optional[CacheKey], site: str, *args: Any, tag: Any = None) -> CacheKey:
    """Build the key of one indicator call.

    Parameters
    ----------
    parent : CacheKey or None
        Key of the calling indicator, ``None`` for a top-level call.
    site : str
        Stable token naming the formula (e.g. ``"trend.ema"``).
    *args
        Input series and scalar parameters, in signature order.
    tag : optional
        Extra discriminator for callers that need two independent states
        for otherwise identical calls.  Ignored when ``None``.
    """
    if parent is not None and not isinstance(parent, CacheKey):
        raise TypeError(f"parent must be a CacheKey or None, got {type(parent).__name__}")
    if not isinstance(site, str) or not site:
        raise ValueError("site token must be a non-empty string")
    contributions = tuple(contribution(a) for a in args)
    if tag is not None:
        contributions += (_fold(b"tag", _as_bytes(contribution(tag))),)
    return CacheKey(parent, site, contributions)
