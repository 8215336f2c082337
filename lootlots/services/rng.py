"""
Random sources for class draws
------------------------------

A random source hands out one fresh uniform integer per call:

    source.randbelow(n) -> int in [0, n)

A value is never handed out twice. The selector consumes exactly one value
per draw, so replaying a source replays the draw sequence and nothing else.

Two sources ship with the service:

- ``SecureRandomSource``: OS entropy through ``secrets.SystemRandom``. This is
  the default and the only one suitable for real money.
- ``KeyedRandomSource``: BLAKE2s over (seed, namespace, counter). Deterministic
  and replayable, useful for audits and tests. Anyone who knows or chooses the
  seed can predict every draw, the same weakness as a block-derived seed, so it
  must not be used where buyers pay for outcomes.

Use:
    from lootlots.services.rng import KeyedRandomSource, build_random_source

    src = KeyedRandomSource(seed=12345678, namespace="loot.v1")
    v = src.randbelow(10_000)
"""

from __future__ import annotations

import hashlib
import secrets
import threading
from typing import Protocol, runtime_checkable


@runtime_checkable
class RandomSource(Protocol):
    def randbelow(self, n: int) -> int:
        ...


# -------- Core hashing --------------------------------------------------------

def _to_uint64(seed: int, key: str, namespace: str = "") -> int:
    """
    Produce a deterministic 64-bit unsigned int from seed+key+namespace.
    """
    h = hashlib.blake2s(digest_size=8)
    h.update(f"{int(seed):08d}".encode("utf-8"))
    if namespace:
        h.update(b"|")
        h.update(namespace.encode("utf-8"))
    h.update(b"|")
    h.update(key.encode("utf-8"))
    return int.from_bytes(h.digest(), "big")


# -------- Sources -------------------------------------------------------------

class SecureRandomSource:
    """Uniform draws from the operating system CSPRNG."""

    def __init__(self):
        self._rng = secrets.SystemRandom()

    def randbelow(self, n: int) -> int:
        if n <= 0:
            raise ValueError("n must be > 0")
        return self._rng.randrange(n)


class KeyedRandomSource:
    """
    Deterministic source carrying (seed, namespace) and a draw counter.

    Each call hashes the next counter value, so no two calls share a key.
    Thread-safe; the counter advances under a lock.

    Example:
        src = KeyedRandomSource(12345678, "loot.v1")
        src.randbelow(100)      # counter 0
        src.randbelow(100)      # counter 1
    """
    __slots__ = ("seed", "namespace", "_counter", "_lock")

    def __init__(self, seed: int, namespace: str = "", start: int = 0):
        self.seed = int(seed)
        self.namespace = namespace or ""
        self._counter = int(start)
        self._lock = threading.Lock()

    @property
    def counter(self) -> int:
        return self._counter

    def _next_key(self) -> str:
        with self._lock:
            n = self._counter
            self._counter += 1
        return f"draw.{n}"

    def randbelow(self, n: int) -> int:
        if n <= 0:
            raise ValueError("n must be > 0")
        # 64-bit hash modulo a small n; the bias is below 2**-50 for n <= 10_000
        return _to_uint64(self.seed, self._next_key(), self.namespace) % n


def build_random_source(spec: str) -> RandomSource:
    """
    Build a source from a config string: ``secure`` or ``keyed:<seed>[:<namespace>]``.
    """
    spec = (spec or "secure").strip()
    if spec == "secure":
        return SecureRandomSource()
    if spec.startswith("keyed:"):
        parts = spec.split(":", 2)
        try:
            seed = int(parts[1])
        except (IndexError, ValueError):
            raise ValueError(f"keyed random source needs an integer seed, got {spec!r}")
        namespace = parts[2] if len(parts) > 2 else "loot"
        return KeyedRandomSource(seed, namespace)
    raise ValueError(f"unknown random source {spec!r}")
