import enum
import logging
from dataclasses import dataclass

import numpy as np

LOGGER = logging.getLogger("cache")

ADDRESS_MASK = 0xFFFFFFFF


class ConfigurationError(ValueError):
    """Raised when a cache configuration cannot be built."""


class AccessResult(enum.Enum):
    MISS = 0
    HIT = 1

    def __bool__(self):
        return self is AccessResult.HIT


class Replacement(enum.Enum):
    LRU = "lru"
    RANDOM = "random"

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            choices = ", ".join(p.value for p in cls)
            raise ConfigurationError(f"unknown replacement policy {value!r} (expected one of: {choices})") from None


def _is_pow2(value):
    return isinstance(value, int) and not isinstance(value, bool) and value > 0 and value & (value - 1) == 0


def _log2(value):
    return value.bit_length() - 1


@dataclass(frozen=True)
class CacheGeometry:
    """
    Shape of a single-level cache.

    size_bytes / block_size_bytes lines are grouped into sets of
    `associativity` ways. All three values must be powers of two and the
    associativity may not exceed the number of lines.
    """

    size_bytes: int
    block_size_bytes: int
    associativity: int

    def __post_init__(self):
        for field in ("size_bytes", "block_size_bytes", "associativity"):
            value = getattr(self, field)
            if not _is_pow2(value):
                raise ConfigurationError(f"{field} must be a positive power of two, got {value!r}")
        if self.block_size_bytes > self.size_bytes:
            raise ConfigurationError(
                f"block size {self.block_size_bytes} is larger than cache size {self.size_bytes}"
            )
        if self.num_lines % self.associativity != 0:
            raise ConfigurationError(
                f"associativity {self.associativity} does not divide {self.num_lines} lines"
            )

    @classmethod
    def direct_mapped(cls, size_bytes, block_size_bytes):
        return cls(size_bytes, block_size_bytes, 1)

    @classmethod
    def fully_associative(cls, size_bytes, block_size_bytes):
        return cls(size_bytes, block_size_bytes, size_bytes // block_size_bytes)

    @property
    def num_lines(self):
        return self.size_bytes // self.block_size_bytes

    @property
    def num_sets(self):
        return self.num_lines // self.associativity

    @property
    def block_offset_bits(self):
        return _log2(self.block_size_bytes)

    @property
    def set_index_bits(self):
        return _log2(self.num_sets)


def decode(address, geometry):
    """Split a byte address into (tag, set index, byte offset)."""
    offset_bits = geometry.block_offset_bits
    set_index = (address >> offset_bits) & (geometry.num_sets - 1)
    tag = address >> (offset_bits + geometry.set_index_bits)
    offset = address & (geometry.block_size_bytes - 1)
    return tag, set_index, offset


class CacheLine:
    __slots__ = ("tag", "valid", "counter")

    def __init__(self):
        self.tag = 0
        self.valid = False
        self.counter = 0

    def __repr__(self):
        return f"CacheLine(tag={self.tag:#x}, valid={self.valid}, counter={self.counter})"


class CacheSet:
    """One set index worth of lines, indexed by way."""

    def __init__(self, associativity):
        self.lines = [CacheLine() for _ in range(associativity)]

    def __len__(self):
        return len(self.lines)

    def find(self, tag):
        for way, line in enumerate(self.lines):
            if line.valid and line.tag == tag:
                return way
        return None

    def free_way(self):
        for way, line in enumerate(self.lines):
            if not line.valid:
                return way
        return None

    def fill(self, way, tag):
        line = self.lines[way]
        line.tag = tag
        line.valid = True
        line.counter = 0

    def valid_tags(self):
        return [line.tag for line in self.lines if line.valid]

    def invalidate(self):
        for line in self.lines:
            line.valid = False
            line.counter = 0


class ReplacementPolicy:
    """Chooses the way to evict from a full set."""

    def touch(self, cache_set, way):
        # Counters on invalid ways are bumped too; validity alone decides
        # whether they get picked, so their values carry no meaning.
        for i, line in enumerate(cache_set.lines):
            if i == way:
                line.counter = 0
            else:
                line.counter += 1

    def select_victim(self, cache_set):
        raise NotImplementedError


class LRUPolicy(ReplacementPolicy):
    def select_victim(self, cache_set):
        victim = 0
        oldest = cache_set.lines[0].counter
        for way, line in enumerate(cache_set.lines):
            if line.counter > oldest:
                victim = way
                oldest = line.counter
        return victim


class RandomPolicy(ReplacementPolicy):
    def __init__(self, rng=None):
        # Seeded once here, never per access.
        self.rng = rng if rng is not None else np.random.default_rng()

    def select_victim(self, cache_set):
        return int(self.rng.integers(0, len(cache_set)))


def make_policy(replacement, rng=None):
    replacement = Replacement.parse(replacement)
    if replacement is Replacement.RANDOM:
        return RandomPolicy(rng)
    return LRUPolicy()


class CacheModel:
    """
    Set-associative cache model.
    Classifies each byte address as a hit or a miss and keeps hit/access counts.
    """

    def __init__(self, geometry, replacement=Replacement.LRU, rng=None, name=None):
        if not isinstance(geometry, CacheGeometry):
            raise ConfigurationError(f"expected a CacheGeometry, got {type(geometry).__name__}")
        self.geometry = geometry
        self.replacement = Replacement.parse(replacement)
        self.policy = make_policy(self.replacement, rng)
        self.name = name or f"{geometry.associativity}-way {self.replacement.value}"
        self.sets = [CacheSet(geometry.associativity) for _ in range(geometry.num_sets)]
        self.hits = 0
        self.accesses = 0
        LOGGER.debug(
            "%s: %d sets x %d ways, %d-byte blocks",
            self.name, geometry.num_sets, geometry.associativity, geometry.block_size_bytes,
        )

    def access(self, address):
        """
        Access byte `address`. Return AccessResult.HIT or AccessResult.MISS.
        Updates replacement state and counters.
        """
        tag, set_index, _ = decode(address, self.geometry)
        s = self.sets[set_index]
        self.accesses += 1

        way = s.find(tag)
        if way is not None:
            self.policy.touch(s, way)
            self.hits += 1
            return AccessResult.HIT

        # cold miss -> fill an empty way, otherwise evict
        way = s.free_way()
        if way is None:
            way = self.policy.select_victim(s)
        s.fill(way, tag)
        self.policy.touch(s, way)
        return AccessResult.MISS

    @property
    def misses(self):
        return self.accesses - self.hits

    @property
    def hit_rate(self):
        return self.hits / self.accesses if self.accesses else 0.0

    def reset(self):
        for s in self.sets:
            s.invalidate()
        self.hits = 0
        self.accesses = 0

    def stats(self):
        used_lines = sum(len(s.valid_tags()) for s in self.sets)
        return {
            "name": self.name,
            "cache_size_bytes": self.geometry.size_bytes,
            "block_size": self.geometry.block_size_bytes,
            "associativity": self.geometry.associativity,
            "num_sets": self.geometry.num_sets,
            "replacement": self.replacement.value,
            "used_lines": used_lines,
            "hits": self.hits,
            "accesses": self.accesses,
            "hit_rate": self.hit_rate,
        }
