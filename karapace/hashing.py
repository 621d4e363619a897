"""BLAKE3 hashing with the default 32-byte output, in pure Python."""

from __future__ import annotations

import struct
from dataclasses import dataclass

_MASK = 0xFFFFFFFF
_IV = (
    0x6A09E667,
    0xBB67AE85,
    0x3C6EF372,
    0xA54FF53A,
    0x510E527F,
    0x9B05688C,
    0x1F83D9AB,
    0x5BE0CD19,
)
_MSG_PERMUTATION = (2, 6, 3, 10, 7, 0, 4, 13, 1, 11, 12, 5, 9, 14, 15, 8)

_CHUNK_START = 1 << 0
_CHUNK_END = 1 << 1
_PARENT = 1 << 2
_ROOT = 1 << 3

_BLOCK_LEN = 64
_CHUNK_LEN = 1024
_OUT_LEN = 32


def _g(s: list[int], a: int, b: int, c: int, d: int, mx: int, my: int) -> None:
    s[a] = (s[a] + s[b] + mx) & _MASK
    v = s[d] ^ s[a]
    s[d] = ((v >> 16) | (v << 16)) & _MASK
    s[c] = (s[c] + s[d]) & _MASK
    v = s[b] ^ s[c]
    s[b] = ((v >> 12) | (v << 20)) & _MASK
    s[a] = (s[a] + s[b] + my) & _MASK
    v = s[d] ^ s[a]
    s[d] = ((v >> 8) | (v << 24)) & _MASK
    s[c] = (s[c] + s[d]) & _MASK
    v = s[b] ^ s[c]
    s[b] = ((v >> 7) | (v << 25)) & _MASK


def _round(s: list[int], m: list[int]) -> None:
    _g(s, 0, 4, 8, 12, m[0], m[1])
    _g(s, 1, 5, 9, 13, m[2], m[3])
    _g(s, 2, 6, 10, 14, m[4], m[5])
    _g(s, 3, 7, 11, 15, m[6], m[7])
    _g(s, 0, 5, 10, 15, m[8], m[9])
    _g(s, 1, 6, 11, 12, m[10], m[11])
    _g(s, 2, 7, 8, 13, m[12], m[13])
    _g(s, 3, 4, 9, 14, m[14], m[15])


def _compress(
    cv: tuple[int, ...] | list[int],
    block_words: tuple[int, ...],
    counter: int,
    block_len: int,
    flags: int,
) -> list[int]:
    state = [
        *cv,
        *_IV[:4],
        counter & _MASK,
        (counter >> 32) & _MASK,
        block_len,
        flags,
    ]
    message = list(block_words)
    for round_number in range(7):
        _round(state, message)
        if round_number < 6:
            message = [message[i] for i in _MSG_PERMUTATION]
    low = [x ^ y for x, y in zip(state[:8], state[8:])]
    high = [x ^ y for x, y in zip(state[8:], cv)]
    return low + high


def _words(block: bytes) -> tuple[int, ...]:
    return struct.unpack("<16I", block.ljust(_BLOCK_LEN, b"\x00"))


@dataclass(frozen=True)
class _Output:
    input_cv: tuple[int, ...]
    block_words: tuple[int, ...]
    counter: int
    block_len: int
    flags: int

    def chaining_value(self) -> tuple[int, ...]:
        return tuple(
            _compress(self.input_cv, self.block_words, self.counter, self.block_len, self.flags)[:8]
        )

    def root_bytes(self, length: int) -> bytes:
        out = bytearray()
        block_counter = 0
        while len(out) < length:
            words = _compress(
                self.input_cv,
                self.block_words,
                block_counter,
                self.block_len,
                self.flags | _ROOT,
            )
            out += struct.pack("<16I", *words)
            block_counter += 1
        return bytes(out[:length])


def _parent_output(left: tuple[int, ...], right: tuple[int, ...], key: tuple[int, ...], flags: int) -> _Output:
    return _Output(key, left + right, 0, _BLOCK_LEN, flags | _PARENT)


class _ChunkState:
    def __init__(self, key: tuple[int, ...], chunk_counter: int, flags: int) -> None:
        self.cv = key
        self.chunk_counter = chunk_counter
        self.flags = flags
        self.block = bytearray()
        self.blocks_compressed = 0

    def __len__(self) -> int:
        return _BLOCK_LEN * self.blocks_compressed + len(self.block)

    def _start_flag(self) -> int:
        return _CHUNK_START if self.blocks_compressed == 0 else 0

    def update(self, data: bytes) -> None:
        pos = 0
        while pos < len(data):
            if len(self.block) == _BLOCK_LEN:
                self.cv = tuple(
                    _compress(
                        self.cv,
                        _words(bytes(self.block)),
                        self.chunk_counter,
                        _BLOCK_LEN,
                        self.flags | self._start_flag(),
                    )[:8]
                )
                self.blocks_compressed += 1
                self.block.clear()
            take = min(_BLOCK_LEN - len(self.block), len(data) - pos)
            self.block += data[pos : pos + take]
            pos += take

    def output(self) -> _Output:
        return _Output(
            self.cv,
            _words(bytes(self.block)),
            self.chunk_counter,
            len(self.block),
            self.flags | self._start_flag() | _CHUNK_END,
        )


class Blake3:
    """Incremental BLAKE3 hasher."""

    def __init__(self) -> None:
        self._key = _IV
        self._flags = 0
        self._chunk = _ChunkState(self._key, 0, self._flags)
        self._cv_stack: list[tuple[int, ...]] = []

    def _push_chunk_cv(self, new_cv: tuple[int, ...], total_chunks: int) -> None:
        while total_chunks & 1 == 0:
            new_cv = _parent_output(self._cv_stack.pop(), new_cv, self._key, self._flags).chaining_value()
            total_chunks >>= 1
        self._cv_stack.append(new_cv)

    def update(self, data: bytes) -> None:
        """Feed more input into the hasher."""
        data = bytes(data)
        pos = 0
        while pos < len(data):
            if len(self._chunk) == _CHUNK_LEN:
                chunk_cv = self._chunk.output().chaining_value()
                total_chunks = self._chunk.chunk_counter + 1
                self._push_chunk_cv(chunk_cv, total_chunks)
                self._chunk = _ChunkState(self._key, total_chunks, self._flags)
            take = min(_CHUNK_LEN - len(self._chunk), len(data) - pos)
            self._chunk.update(data[pos : pos + take])
            pos += take

    def digest(self) -> bytes:
        """Return the 32-byte hash of everything fed so far."""
        output = self._chunk.output()
        for left in reversed(self._cv_stack):
            output = _parent_output(left, output.chaining_value(), self._key, self._flags)
        return output.root_bytes(_OUT_LEN)

    def hexdigest(self) -> str:
        """Return the hash as 64 lowercase hex characters."""
        return self.digest().hex()


def blake3_hex(data: bytes) -> str:
    """Hash ``data`` and return the hex digest."""
    hasher = Blake3()
    hasher.update(data)
    return hasher.hexdigest()