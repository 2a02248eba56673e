"""The LowMC block cipher over GF(2), with blocks and matrix rows held as integers.

Bit ``i`` of an integer is element ``i`` of the block; a matrix is a list of
row integers, and bit ``j`` of row ``i`` is the entry in column ``j``.
"""

from __future__ import annotations

from pathlib import Path
from typing import Iterable, List, Optional, Sequence, TextIO

from .sharegen import Prng

SBOX = (0x00, 0x01, 0x03, 0x06, 0x07, 0x04, 0x05, 0x02)
INV_SBOX = (0x00, 0x01, 0x07, 0x02, 0x05, 0x06, 0x03, 0x04)


def multiply_gf2(matrix: Sequence[int], vector: int) -> int:
    """Multiply a GF(2) matrix by a column vector; row ``i`` gives output bit ``i``."""
    result = 0
    for i, row in enumerate(matrix):
        if (row & vector).bit_count() & 1 if hasattr(int, "bit_count") else bin(row & vector).count("1") & 1:
            result |= 1 << i
    return result


def rank_of_matrix(matrix: Sequence[int], size: int) -> int:
    """Rank of a GF(2) matrix whose rows are ``size`` bits wide."""
    mat = list(matrix)
    n = len(mat)
    row = 0
    for col in range(1, size + 1):
        if row >= n:
            break
        bit = 1 << (size - col)
        if not mat[row] & bit:
            pivot = next((r for r in range(row, n) if mat[r] & bit), None)
            if pivot is None:
                continue
            mat[row], mat[pivot] = mat[pivot], mat[row]
        for i in range(row + 1, n):
            if mat[i] & bit:
                mat[i] ^= mat[row]
        row += 1
        if row == size:
            break
    return row


def invert_matrix(matrix: Sequence[int], size: int) -> List[int]:
    """Inverse of a square GF(2) matrix of ``size`` columns, by Gauss-Jordan elimination."""
    mat = list(matrix)
    n = len(mat)
    inv = [1 << i for i in range(size)]

    row = 0
    for col in range(size):
        if row >= n:
            break
        bit = 1 << col
        if not mat[row] & bit:
            pivot = next((r for r in range(row + 1, n) if mat[r] & bit), None)
            if pivot is None:
                continue
            mat[row], mat[pivot] = mat[pivot], mat[row]
            inv[row], inv[pivot] = inv[pivot], inv[row]
        for i in range(row + 1, n):
            if mat[i] & bit:
                mat[i] ^= mat[row]
                inv[i] ^= inv[row]
        row += 1

    for col in range(size, 0, -1):
        bit = 1 << (col - 1)
        for r in range(col - 1):
            if mat[r] & bit:
                mat[r] ^= mat[col - 1]
                inv[r] ^= inv[col - 1]
    return inv


def load_matrix(stream: TextIO, rows: int, cols: int) -> List[int]:
    """Read ``rows`` lines of ``cols`` characters '0'/'1', each ending in a newline."""
    matrix = []
    for _ in range(rows):
        value = 0
        for j in range(cols):
            ch = stream.read(1)
            if ch == "1":
                value |= 1 << j
            elif ch != "0":
                raise ValueError(f"unexpected character {ch!r} in matrix data")
        if stream.read(1) != "\n":
            raise ValueError("matrix row does not end with a newline")
        matrix.append(value)
    return matrix


def write_matrix(stream: TextIO, matrix: Iterable[int], cols: int) -> None:
    """Write a matrix in the format read by :func:`load_matrix`."""
    for row in matrix:
        stream.write("".join("1" if row >> j & 1 else "0" for j in range(cols)))
        stream.write("\n")


class LowMC:
    """LowMC with parameters fixed at construction; matrices come from a zero-seeded generator."""

    def __init__(
        self,
        invertible: bool,
        key: int = 0,
        num_boxes: int = 49,
        block_size: int = 256,
        key_size: int = 80,
        rounds: int = 12,
    ):
        if num_boxes < 0 or block_size <= 0 or key_size <= 0 or rounds < 0:
            raise ValueError("invalid LowMC parameters")
        if 3 * num_boxes > block_size:
            raise ValueError("block_size must hold 3 bits per S-box")
        self.num_boxes = num_boxes
        self.block_size = block_size
        self.key_size = key_size
        self.rounds = rounds
        self.identity_size = block_size - 3 * num_boxes
        self.invertible = invertible
        self._block_mask = (1 << block_size) - 1

        self.lin_matrices: List[List[int]] = []
        self.inv_lin_matrices: List[List[int]] = []
        self.round_constants: List[int] = []
        self.key_matrices: List[List[int]] = []
        self.round_keys: List[int] = []
        self.key = 0

        self._instantiate(invertible)
        self.set_key(key)

    def _check_block(self, message: int) -> int:
        if message < 0 or message > self._block_mask:
            raise ValueError(f"message must fit in {self.block_size} bits")
        return message

    def encrypt(self, message: int) -> int:
        c = self._check_block(message) ^ self.round_keys[0]
        for r in range(1, self.rounds + 1):
            c = self.substitution(c)
            c = multiply_gf2(self.lin_matrices[r - 1], c)
            c ^= self.round_constants[r - 1]
            c ^= self.round_keys[r]
        return c

    def decrypt(self, message: int) -> int:
        if not self.invertible:
            raise ValueError("cipher was built without inverse linear layers")
        c = self._check_block(message)
        for r in range(self.rounds, 0, -1):
            c ^= self.round_keys[r]
            c ^= self.round_constants[r - 1]
            c = multiply_gf2(self.inv_lin_matrices[r - 1], c)
            c = self.inv_substitution(c)
        return c ^ self.round_keys[0]

    def set_key(self, key: int) -> None:
        """Replace the master key and recompute the round keys."""
        if key < 0 or key >> self.key_size:
            raise ValueError(f"key must fit in {self.key_size} bits")
        self.key = key
        self.round_keys = [multiply_gf2(m, key) for m in self.key_matrices]

    def _apply_sboxes(self, message: int, table: Sequence[int]) -> int:
        boxed_bits = 3 * self.num_boxes
        result = message >> boxed_bits
        for i in range(1, self.num_boxes + 1):
            result = (result << 3) & self._block_mask
            result ^= table[(message >> 3 * (self.num_boxes - i)) & 0x7]
        return result

    def substitution(self, message: int) -> int:
        return self._apply_sboxes(self._check_block(message), SBOX)

    def inv_substitution(self, message: int) -> int:
        return self._apply_sboxes(self._check_block(message), INV_SBOX)

    @staticmethod
    def _random_rows(prng: Prng, count: int, width: int) -> List[int]:
        rows = []
        for _ in range(count):
            data = prng.get_bytes(width)
            rows.append(sum((b & 1) << i for i, b in enumerate(data)))
        return rows

    @staticmethod
    def _read_matrix_file(path: Path, rows: int, cols: int) -> Optional[List[int]]:
        try:
            with path.open("r", newline="") as stream:
                return load_matrix(stream, rows, cols)
        except FileNotFoundError:
            return None

    def _instantiate(self, invertible: bool) -> None:
        prng = Prng(bytes(16))
        n, k = self.block_size, self.key_size

        for r in range(self.rounds):
            if not invertible:
                self.lin_matrices.append(self._random_rows(prng, n, n))
                continue
            mat = self._read_matrix_file(Path(f"linMtx_{r}.txt"), n, n)
            if mat is None:
                mat = self._random_rows(prng, n, n)
                while rank_of_matrix(mat, n) != n:
                    mat = self._random_rows(prng, n, n)
            elif rank_of_matrix(mat, n) != n:
                raise ValueError(f"linear matrix {r} is not invertible")
            self.lin_matrices.append(mat)
            self.inv_lin_matrices.append(invert_matrix(mat, n))

        self.round_constants = self._random_rows(prng, self.rounds, n)

        min_rank = min(n, k)
        for r in range(self.rounds + 1):
            if not invertible:
                self.key_matrices.append(self._random_rows(prng, n, k))
                continue
            mat = self._read_matrix_file(Path(f"keyMtx_{r}.txt"), n, k)
            if mat is None:
                mat = self._random_rows(prng, n, k)
                while rank_of_matrix(mat, k) < min_rank:
                    mat = self._random_rows(prng, n, k)
            elif rank_of_matrix(mat, k) < min_rank:
                raise ValueError(f"key matrix {r} is not of maximal rank")
            self.key_matrices.append(mat)