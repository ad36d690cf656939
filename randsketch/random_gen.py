"""
Counter-based random number generation.

Every random value in the package is a pure function of a CounterState and
an offset from it. The generator is Philox4x32-10 (Salmon et al., 2011):
each (counter, key) pair maps to a block of four 32-bit words, and blocks at
different counters can be produced independently and in any order.
"""
from dataclasses import dataclass
from typing import Sequence, Tuple, Union

import numpy as np

MASK32 = 0xFFFFFFFF
MASK128 = (1 << 128) - 1
WORDS_PER_BLOCK = 4

PHILOX_M0 = np.uint64(0xD2511F53)
PHILOX_M1 = np.uint64(0xCD9E8D57)
PHILOX_W0 = 0x9E3779B9
PHILOX_W1 = 0xBB67AE85
PHILOX_ROUNDS = 10

_SHIFT32 = np.uint64(32)
_MASK32_U64 = np.uint64(MASK32)


@dataclass(frozen=True)
class CounterState:
    """
    A (counter, key) pair for the Philox4x32 generator.

    Attributes:
        counter: Four 32-bit words, least significant first.
        key: Two 32-bit words.
    """
    counter: Tuple[int, int, int, int] = (0, 0, 0, 0)
    key: Tuple[int, int] = (0, 0)

    def __post_init__(self):
        counter = tuple(int(w) for w in self.counter)
        key = tuple(int(w) for w in self.key)
        if len(counter) != 4 or len(key) != 2:
            raise ValueError(
                f"CounterState needs 4 counter words and 2 key words, "
                f"got {len(counter)} and {len(key)}."
            )
        if any(w < 0 or w > MASK32 for w in counter + key):
            raise ValueError("CounterState words must be unsigned 32-bit integers.")
        object.__setattr__(self, 'counter', counter)
        object.__setattr__(self, 'key', key)

    @classmethod
    def from_key(cls, key: int) -> 'CounterState':
        """State with a zero counter and the given (up to 64-bit) key."""
        key = int(key)
        if key < 0 or key >> 64:
            raise ValueError(f"Seed key must be an unsigned 64-bit integer, got {key}.")
        return cls(counter=(0, 0, 0, 0), key=(key & MASK32, key >> 32))

    @property
    def counter_value(self) -> int:
        c = self.counter
        return c[0] | (c[1] << 32) | (c[2] << 64) | (c[3] << 96)

    def advance(self, n: int) -> 'CounterState':
        """Skip `n` blocks of the stream."""
        n = int(n)
        if n < 0:
            raise ValueError(f"Counters only move forward, got an increment of {n}.")
        value = (self.counter_value + n) & MASK128
        words = tuple((value >> (32 * i)) & MASK32 for i in range(4))
        return CounterState(counter=words, key=self.key)


def as_state(seed: Union[int, CounterState]) -> CounterState:
    """Accept either an integer key or an explicit CounterState."""
    if isinstance(seed, CounterState):
        return seed
    if isinstance(seed, (int, np.integer)):
        return CounterState.from_key(int(seed))
    raise TypeError(f"Expected an integer key or a CounterState, got {type(seed).__name__}.")


def counters_at(state: CounterState, offsets) -> np.ndarray:
    """
    Counters `state.counter + offsets[i]` as an (N, 4) uint32 array.

    Args:
        state: Base state.
        offsets: Non-negative integer offsets (any shape; flattened).

    Returns:
        Array of shape (N, 4), least significant word first.
    """
    offsets = np.asarray(offsets).ravel()
    if offsets.size and offsets.dtype.kind == 'i' and offsets.min() < 0:
        raise ValueError("Counter offsets must be nonnegative.")
    offs = offsets.astype(np.uint64, copy=False)
    c = state.counter
    lo = np.uint64(c[0] | (c[1] << 32))
    hi = np.uint64(c[2] | (c[3] << 32))
    new_lo = offs + lo
    # unsigned addition overflowed iff the sum is smaller than an addend
    carry = (new_lo < offs).astype(np.uint64)
    new_hi = carry + hi
    out = np.empty((offs.size, 4), dtype=np.uint32)
    out[:, 0] = new_lo & _MASK32_U64
    out[:, 1] = new_lo >> _SHIFT32
    out[:, 2] = new_hi & _MASK32_U64
    out[:, 3] = new_hi >> _SHIFT32
    return out


def philox4x32(counters: np.ndarray, key: Sequence[int], rounds: int = PHILOX_ROUNDS) -> np.ndarray:
    """
    Vectorised Philox4x32 bijection.

    Args:
        counters: Array of shape (N, 4) holding 32-bit counter words.
        key: Two 32-bit key words.
        rounds: Number of Philox rounds.

    Returns:
        Array of shape (N, 4) and dtype uint32.
    """
    ctr = np.asarray(counters, dtype=np.uint64).reshape(-1, 4)
    x0, x1, x2, x3 = ctr[:, 0], ctr[:, 1], ctr[:, 2], ctr[:, 3]
    k0, k1 = int(key[0]), int(key[1])
    for _ in range(rounds):
        p0 = PHILOX_M0 * x0
        p1 = PHILOX_M1 * x2
        hi0, lo0 = p0 >> _SHIFT32, p0 & _MASK32_U64
        hi1, lo1 = p1 >> _SHIFT32, p1 & _MASK32_U64
        x0, x1, x2, x3 = (
            hi1 ^ x1 ^ np.uint64(k0),
            lo1,
            hi0 ^ x3 ^ np.uint64(k1),
            lo0,
        )
        k0 = (k0 + PHILOX_W0) & MASK32
        k1 = (k1 + PHILOX_W1) & MASK32
    return np.stack([x0, x1, x2, x3], axis=1).astype(np.uint32)


def generate_blocks(state: CounterState, offsets) -> np.ndarray:
    """Random blocks at `state.advance(k)` for each k in `offsets`."""
    return philox4x32(counters_at(state, offsets), state.key)


def generate(state: CounterState) -> Tuple[int, int, int, int]:
    """The four words produced at exactly `state`."""
    words = philox4x32(np.array([state.counter], dtype=np.uint32), state.key)[0]
    return tuple(int(w) for w in words)


# -----------------------------------------------------------------------------
# Word transforms. Each maps an (N, 4) uint32 array to an (N, 4) float64 array
# and depends only on the words of its own block.
# -----------------------------------------------------------------------------

def u01(words: np.ndarray) -> np.ndarray:
    """Map 32-bit words to the open interval (0, 1)."""
    return np.asarray(words, dtype=np.uint32).astype(np.float64) * 2.0**-32 + 2.0**-33


def uneg11(words: np.ndarray) -> np.ndarray:
    """Map 32-bit words to the open interval (-1, 1)."""
    signed = np.ascontiguousarray(words, dtype=np.uint32).view(np.int32)
    return signed.astype(np.float64) * 2.0**-31 + 2.0**-32


def boxmul(words: np.ndarray) -> np.ndarray:
    """
    Box-Muller transform on word pairs (0, 1) and (2, 3) of each block.

    Returns four independent standard normal values per block.
    """
    words = np.asarray(words, dtype=np.uint32).reshape(-1, WORDS_PER_BLOCK)
    angle = np.pi * uneg11(words[:, 0::2])
    radius = np.sqrt(-2.0 * np.log(u01(words[:, 1::2])))
    out = np.empty(words.shape, dtype=np.float64)
    out[:, 0::2] = np.sin(angle) * radius
    out[:, 1::2] = np.cos(angle) * radius
    return out
