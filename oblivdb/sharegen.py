"""Seeded pseudorandom generators and correlated share generation for three parties."""

from __future__ import annotations

from typing import Union

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

BLOCK_SIZE = 16
_U64_MASK = (1 << 64) - 1

Seed = Union[bytes, bytearray, int]


def _to_block(value: Seed) -> bytes:
    """Turn a seed into a 16-byte block; integers fill the low 64 bits, little endian."""
    if isinstance(value, int):
        if value < 0 or value > _U64_MASK:
            raise ValueError("integer seed must fit in 64 bits")
        return value.to_bytes(8, "little") + bytes(8)
    block = bytes(value)
    if len(block) != BLOCK_SIZE:
        raise ValueError(f"seed must be {BLOCK_SIZE} bytes, got {len(block)}")
    return block


def _block_from_halves(high: int, low: int) -> bytes:
    return (low & _U64_MASK).to_bytes(8, "little") + (high & _U64_MASK).to_bytes(8, "little")


def _aes_ecb(key: bytes):
    return Cipher(algorithms.AES(key), modes.ECB()).encryptor()


def _counter_mode(encryptor, start: int, count: int) -> bytes:
    """Encrypt the counter blocks start, start + 1, ... with an ECB encryptor."""
    counters = b"".join(i.to_bytes(BLOCK_SIZE, "little") for i in range(start, start + count))
    return encryptor.update(counters)


def _to_i64(value: int) -> int:
    value &= _U64_MASK
    return value - (1 << 64) if value >> 63 else value


class Prng:
    """AES counter-mode generator keyed by a 16-byte seed."""

    def __init__(self, seed: Seed, buffer_size: int = 256):
        if buffer_size <= 0:
            raise ValueError("buffer_size must be positive")
        self._encryptor = _aes_ecb(_to_block(seed))
        self._buffer_blocks = buffer_size
        self._block_idx = 0
        self._buffer = b""
        self._pos = 0

    def _refill(self) -> None:
        self._buffer = _counter_mode(self._encryptor, self._block_idx, self._buffer_blocks)
        self._block_idx += self._buffer_blocks
        self._pos = 0

    def buffer_span(self, max_bytes: int) -> bytes:
        """Return up to ``max_bytes`` of the bytes currently buffered, refilling if empty."""
        if max_bytes < 0:
            raise ValueError("max_bytes must not be negative")
        if max_bytes == 0:
            return b""
        if self._pos >= len(self._buffer):
            self._refill()
        end = min(len(self._buffer), self._pos + max_bytes)
        chunk = self._buffer[self._pos:end]
        self._pos = end
        return chunk

    def get_bytes(self, count: int) -> bytes:
        if count < 0:
            raise ValueError("count must not be negative")
        parts = []
        remaining = count
        while remaining:
            chunk = self.buffer_span(remaining)
            parts.append(chunk)
            remaining -= len(chunk)
        return b"".join(parts)

    def get_u32(self) -> int:
        return int.from_bytes(self.get_bytes(4), "little")

    def get_bool(self) -> bool:
        return bool(self.get_bytes(1)[0] & 1)

    def get_block(self) -> bytes:
        return self.get_bytes(BLOCK_SIZE)


class ShareGen:
    """Produces zero-sharings and replicated random shares from seeds shared with neighbours."""

    COMMON_SEED = _block_from_halves(3488535245, 2454523)

    def __init__(self, prev_seed: Seed, next_seed: Seed, buffer_size: int = 256):
        if buffer_size <= 0:
            raise ValueError("buffer_size must be positive")
        self.common = Prng(self.COMMON_SEED)
        self.next_common = Prng(next_seed)
        self.prev_common = Prng(prev_seed)
        self._buffer_blocks = buffer_size
        self._gen_idx = 0
        self._share_idx = 0
        self._generators = (
            _aes_ecb(self.prev_common.get_block()),
            _aes_ecb(self.next_common.get_block()),
        )
        self._buffers = (b"", b"")
        self.refill_buffer()

    def refill_buffer(self) -> None:
        self._buffers = tuple(
            _counter_mode(gen, self._gen_idx, self._buffer_blocks) for gen in self._generators
        )
        self._gen_idx += self._buffer_blocks
        self._share_idx = 0

    def _next_words(self) -> tuple[int, int]:
        if self._share_idx + 8 > self._buffer_blocks * BLOCK_SIZE:
            self.refill_buffer()
        start, end = self._share_idx, self._share_idx + 8
        self._share_idx = end
        prev_word = int.from_bytes(self._buffers[0][start:end], "little")
        next_word = int.from_bytes(self._buffers[1][start:end], "little")
        return prev_word, next_word

    def get_share(self) -> int:
        """An additive share of zero, as a signed 64-bit integer."""
        prev_word, next_word = self._next_words()
        return _to_i64(prev_word - next_word)

    def get_binary_share(self) -> int:
        """An XOR share of zero, as a signed 64-bit integer."""
        prev_word, next_word = self._next_words()
        return _to_i64(prev_word ^ next_word)

    def get_rand_int_share(self) -> tuple[int, int]:
        """A replicated share of a random value: (own component, previous party's component)."""
        prev_word, next_word = self._next_words()
        return _to_i64(next_word), _to_i64(prev_word)

    def get_rand_binary_share(self) -> tuple[int, int]:
        return self.get_rand_int_share()