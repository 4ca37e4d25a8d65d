from collections import defaultdict

import numpy as np


class WorkLog:
    """Counts the work done by an iteration, e.g. operator applications per vector length."""

    def __init__(self):
        self.store = defaultdict(lambda: 0)

    def __getitem__(self, item):
        return self.store[item]

    def __setitem__(self, key, value):
        self.store[key] = value

    def add(self, d: dict):
        for k, v in d.items():
            self[k] += v

    def reset(self) -> dict:
        ret = dict(self.store)
        self.store = defaultdict(lambda: 0)
        return ret

    def __repr__(self):
        s = "{"
        for k, v in self.store.items():
            s += f"'{k}': {v}, "
        return s + "}"


def apply(operator, x: np.array) -> np.array:
    """Apply a linear operator to a vector.

    Callables are called with the vector, everything else (dense and sparse arrays, scipy LinearOperators) is
    applied with the matrix product.
    """
    if callable(operator) and not hasattr(operator, "matvec"):
        y = operator(x)
    else:
        y = operator @ x
    return np.asarray(y).reshape(-1)


def axpy(a, x: np.array, y: np.array) -> np.array:
    """y <- y + a * x, in place."""
    y += a * x
    return y


class OrthonormalBasis:
    """Ordered collection of vectors that are orthonormal with respect to the standard inner product.

    The basis only stores the vectors, it does not check orthonormality.
    """

    def __init__(self, vecs=None):
        self.vecs = [] if vecs is None else list(vecs)

    def __getitem__(self, item):
        return self.vecs[item]

    def __setitem__(self, key, value):
        self.vecs[key] = value

    def __len__(self):
        return len(self.vecs)

    def __iter__(self):
        return iter(self.vecs)

    def append(self, v: np.array):
        self.vecs.append(v)
        return self

    def pop(self) -> np.array:
        return self.vecs.pop()

    def copy(self):
        return OrthonormalBasis([v.copy() for v in self.vecs])

    @property
    def dtype(self):
        return np.result_type(*{v.dtype for v in self.vecs})

    def to_array(self) -> np.array:
        """Return the basis as matrix with the vectors as columns."""
        if not self.vecs:
            return np.empty((0, 0))
        return np.stack(self.vecs, axis=-1)

    def __repr__(self):
        return f"OrthonormalBasis(length={len(self)})"
