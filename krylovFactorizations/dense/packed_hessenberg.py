"""Packed storage of upper Hessenberg matrices.

Column `j` (0-based) of an upper Hessenberg matrix has the `j + 1` entries on and above the diagonal and one entry
below it. The packed format stores these `j + 2` entries column after column in one flat buffer, so a matrix with
`k` columns needs `packed_length(k) = k * (k + 3) / 2` entries. Entry `(i, j)` with `i <= j + 1` is found at
`packed_index(i, j)`.

The subdiagonal entry of the last column lies outside the square `k x k` matrix; the Arnoldi factorization keeps the
residual norm there.
"""
import numpy as np


def packed_length(k: int) -> int:
    return (k * k + 3 * k) >> 1


def packed_index(i: int, j: int) -> int:
    return packed_length(j) + i


class PackedHessenberg:
    """Growable contiguous buffer holding an upper Hessenberg matrix in packed format.

    The buffer only ever grows at its end and is truncated by `resize`. Its capacity grows geometrically, and
    `reserve` can be used to allocate the final capacity up front.
    """

    def __init__(self, dtype=float, capacity: int = 0):
        self._buffer = np.zeros(max(capacity, 0), dtype=dtype)
        self._size = 0

    @property
    def dtype(self):
        return self._buffer.dtype

    @property
    def capacity(self) -> int:
        return self._buffer.shape[0]

    @property
    def data(self) -> np.array:
        """View of the stored entries."""
        return self._buffer[:self._size]

    def __len__(self):
        return self._size

    def __getitem__(self, item):
        return self.data[item]

    def __setitem__(self, key, value):
        self.data[key] = value

    def reserve(self, n: int):
        if n > self.capacity:
            buffer = np.zeros(n, dtype=self.dtype)
            buffer[:self._size] = self.data
            self._buffer = buffer
        return self

    def grow(self, m: int) -> np.array:
        """Append `m` zero entries and return a writable view on them."""
        n = self._size + m
        if n > self.capacity:
            self.reserve(max(n, 2 * self.capacity))
        self._buffer[self._size:n] = 0
        self._size = n
        return self._buffer[n - m:n]

    def append(self, *values):
        self.grow(len(values))[:] = values
        return self

    def resize(self, n: int):
        """Truncate the store to `n` entries."""
        if n > self._size:
            raise ValueError(f"Cannot resize packed store of length {self._size} to larger length {n}.")
        if n < 0:
            raise ValueError(f"Invalid length {n}.")
        self._size = n
        return self

    def clear(self, dtype=None):
        self._size = 0
        if dtype is not None and np.dtype(dtype) != self.dtype:
            self._buffer = np.zeros(self.capacity, dtype=dtype)
        return self

    def copy(self):
        other = PackedHessenberg(self.dtype, self.capacity)
        other.append(*self.data)
        return other

    def unpack(self, n: int):
        return HessenbergView(self, n)

    def __repr__(self):
        return f"PackedHessenberg({self.data!r})"


class HessenbergView:
    """Read-only `n x n` matrix view of a packed Hessenberg store.

    The view refers to the store, not to a copy of its entries.
    """

    def __init__(self, store: PackedHessenberg, n: int):
        if len(store) < packed_length(n):
            raise ValueError(f"Packed store of length {len(store)} is too short for a {n}x{n} Hessenberg matrix.")
        self.store = store
        self.n = n

    @property
    def shape(self):
        return self.n, self.n

    @property
    def dtype(self):
        return self.store.dtype

    def __len__(self):
        return self.n

    def __getitem__(self, item):
        i, j = item
        if not (0 <= i < self.n and 0 <= j < self.n):
            raise IndexError(f"Index {item} out of bounds for Hessenberg matrix of shape {self.shape}.")
        if i > j + 1:
            return np.zeros((), dtype=self.dtype)[()]
        return self.store[packed_index(i, j)]

    def toarray(self) -> np.array:
        H = np.zeros(self.shape, dtype=self.dtype)
        data = self.store.data
        for j in range(self.n):
            m = min(j + 2, self.n)
            offset = packed_length(j)
            H[:m, j] = data[offset:offset + m]
        return H

    def __array__(self, dtype=None, copy=None):
        H = self.toarray()
        return H if dtype is None else H.astype(dtype)

    def __repr__(self):
        return f"HessenbergView({self.toarray()!r})"
