"""32-bit MurmurHash3-style mixing functions."""

from __future__ import annotations

MASK32 = 0xFFFFFFFF


def hash_rot(x: int, k: int) -> int:
    """Rotate the 32-bit value ``x`` left by ``k`` bits."""
    if not 0 <= k <= 32:
        raise ValueError("rotation must be between 0 and 32 bits")
    x &= MASK32
    return ((x << k) | (x >> (32 - k))) & MASK32


def _mhash_add_data(hash_: int, data: int) -> int:
    # Zero-valued data leaves the hash unchanged.
    data &= MASK32
    if not data:
        return hash_ & MASK32
    data = (data * 0xCC9E2D51) & MASK32
    data = hash_rot(data, 15)
    data = (data * 0x1B873593) & MASK32
    return (hash_ ^ data) & MASK32


def mhash_add(hash_: int, data: int) -> int:
    """Mix one 32-bit word of ``data`` into ``hash_``."""
    hash_ = _mhash_add_data(hash_, data)
    hash_ = hash_rot(hash_, 13)
    return (hash_ * 5 + 0xE6546B64) & MASK32


def mhash_finish(hash_: int) -> int:
    """Apply the final avalanche step."""
    hash_ &= MASK32
    hash_ ^= hash_ >> 16
    hash_ = (hash_ * 0x85EBCA6B) & MASK32
    hash_ ^= hash_ >> 13
    hash_ = (hash_ * 0xC2B2AE35) & MASK32
    hash_ ^= hash_ >> 16
    return hash_


def hash_add(hash_: int, data: int) -> int:
    """Mix one 32-bit word into a running hash."""
    return mhash_add(hash_, data)


def hash_finish(hash_: int, final: int) -> int:
    """Finish a running hash, folding in ``final`` (usually the byte length)."""
    return mhash_finish((hash_ ^ final) & MASK32)


def hash_2words(x: int, y: int) -> int:
    """Hash two 32-bit words."""
    return hash_finish(hash_add(hash_add(x, 0), y), 8)


def hash_int(x: int, basis: int) -> int:
    """Hash a 32-bit integer with the given basis."""
    return hash_2words(x, basis)