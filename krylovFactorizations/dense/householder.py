"""Elementary Householder reflections.

A reflection `H = I - beta * v * v^H` acts on the positions `r` of a vector, of the rows `r` of a matrix (`lmul`) or
of the columns `r` of a matrix or the vectors `r` of a basis (`rmulc`, which multiplies with `H^H` from the right).
"""
import numpy as np

from ..base import OrthonormalBasis, axpy


class Householder:
    """Householder reflection `I - beta * v * v^H` restricted to the index range `r`.

    The entry of `v` at the pivot position equals one. A reflection with `beta == 0` is the identity.
    """

    __slots__ = ("beta", "v", "r")

    def __init__(self, beta, v: np.array, r: range):
        self.beta = beta
        self.v = v
        self.r = r

    def __len__(self):
        return len(self.r)

    def __repr__(self):
        return f"Householder(beta={self.beta}, v={self.v}, r={self.r})"


def _check_range(r: range, n: int, what: str):
    if not isinstance(r, range):
        raise ValueError(f"Index range must be a `range`, got {type(r).__name__}.")
    if len(r) == 0 or r.step < 1 or r.start < 0 or r[-1] >= n:
        raise ValueError(f"Index range {r} does not fit into {what} of dimension {n}.")


def _pivot(r: range, k) -> int:
    if k is None:
        k = r[0]
    if k not in r:
        raise ValueError(f"k = {k} should be in the range r = {r}")
    return r.index(k)


def _as_index(r: range):
    return slice(r.start, r.stop, r.step)


def _check_indices(indices, n: int, what: str) -> np.array:
    ids = np.asarray(list(indices))
    if ids.size == 0:
        return ids.astype(int)
    if not np.issubdtype(ids.dtype, np.integer) or ids.min() < 0 or ids.max() >= n:
        raise ValueError(f"Indices {indices} do not fit into {what} of dimension {n}.")
    return ids


def _householder(v: np.array, i: int):
    """Turn `v` in place into the Householder vector that maps `v` onto `nu * e_i`.

    Returns `(beta, v, nu)` where `nu = norm(v)` is real and non-negative.
    """
    a = np.abs(v) ** 2
    sigma = np.sum(a[:i]) + np.sum(a[i + 1:])
    vi = v[i]
    nu = np.sqrt(np.abs(vi) ** 2 + sigma)

    if sigma == 0 and vi == nu:
        beta = np.zeros((), dtype=v.dtype)[()]
    else:
        if np.real(vi) < 0:
            vi = vi - nu
        else:
            # same as vi - nu, without the cancellation
            vi = ((vi - np.conj(vi)) * nu - sigma) / (np.conj(vi) + nu)
        v /= vi
        v[i] = 1
        beta = -np.conj(vi) / nu
    return beta, v, nu


def householder(x: np.array, r: range = None, k: int = None):
    """Householder reflection that zeros `x[r]` except `x[k]` upon `lmul(x, H)`.

    Parameters
    ----------
    x: array_like
        Vector the reflection is built from. It is copied, not modified.
    r: range
        Positions the reflection acts on. Defaults to all positions of `x`.
    k: int
        Pivot position inside `r`. Defaults to the first position of `r`.

    Returns
    ----------
    (H, nu) where applying `H` to `x` yields `nu * e_k` on the positions `r`, `nu = norm(x[r]) >= 0`.
    """
    x = np.asarray(x)
    if r is None:
        r = range(x.shape[0])
    _check_range(r, x.shape[0], "vector")
    i = _pivot(r, k)
    v = np.array(x[_as_index(r)], dtype=np.result_type(x.dtype, float), copy=True)
    beta, v, nu = _householder(v, i)
    return Householder(beta, v, r), nu


def householder_column(A: np.array, r: range, col: int, k: int = None):
    """Householder reflection that zeros `A[r, col]` except `A[k, col]` upon `lmul(A, H)`."""
    A = np.asarray(A)
    _check_range(r, A.shape[0], "matrix with row dimension")
    i = _pivot(r, k)
    v = np.array(A[_as_index(r), col], dtype=np.result_type(A.dtype, float), copy=True)
    beta, v, nu = _householder(v, i)
    return Householder(beta, v, r), nu


def householder_row(A: np.array, row: int, r: range, k: int = None):
    """Householder reflection that zeros `A[row, r]` except `A[row, k]` upon `rmulc(A, H)`."""
    A = np.asarray(A)
    _check_range(r, A.shape[1], "matrix with column dimension")
    i = _pivot(r, k)
    v = np.conj(np.array(A[row, _as_index(r)], dtype=np.result_type(A.dtype, float), copy=True))
    beta, v, nu = _householder(v, i)
    return Householder(beta, v, r), nu


def lmul(x: np.array, H: Householder, cols=None) -> np.array:
    """Multiply `x` from the left with `H`, in place.

    `x` is either a vector or a matrix. For a matrix, the reflection acts on the rows `H.r` of the columns `cols`
    (all columns by default).
    """
    if x.ndim == 1:
        _check_range(H.r, x.shape[0], "vector")
    else:
        _check_range(H.r, x.shape[0], "matrix with row dimension")
        if cols is None:
            cols = range(x.shape[1])
        cols = _check_indices(cols, x.shape[1], "matrix with column dimension")
    if H.beta == 0:
        return x
    v = H.v
    idx = _as_index(H.r)
    if x.ndim == 1:
        mu = H.beta * np.vdot(v, x[idx])
        x[idx] -= mu * v
        return x
    for k in cols:
        mu = H.beta * np.vdot(v, x[idx, k])
        x[idx, k] -= mu * v
    return x


def rmulc(A, H: Householder, rows=None):
    """Multiply `A` from the right with the conjugate transpose of `H`, in place.

    `A` is either a matrix, in which case the reflection acts on the columns `H.r` of the rows `rows` (all rows by
    default), or an `OrthonormalBasis`, in which case it acts on the basis vectors `H.r`.
    """
    if isinstance(A, OrthonormalBasis):
        return _rmulc_basis(A, H)
    _check_range(H.r, A.shape[1], "matrix with column dimension")
    if rows is None:
        rows = range(A.shape[0])
    ids = _check_indices(rows, A.shape[0], "matrix with row dimension")
    if H.beta == 0:
        return A
    v = H.v
    rows = _as_index(rows) if isinstance(rows, range) and rows.step > 0 else ids
    w = np.zeros(A[rows, H.r[0]].shape, dtype=np.result_type(A.dtype, v.dtype))
    for l, k in enumerate(H.r):
        w += A[rows, k] * v[l]
    cbeta = np.conj(H.beta)
    for l, k in enumerate(H.r):
        A[rows, k] -= cbeta * w * np.conj(v[l])
    return A


def _rmulc_basis(b: OrthonormalBasis, H: Householder):
    _check_range(H.r, len(b), "basis")
    if H.beta == 0:
        return b
    v = H.v
    w = np.zeros_like(b[H.r[0]], dtype=np.result_type(b[H.r[0]], v))
    for l, k in enumerate(H.r):
        axpy(v[l], b[k], w)
    for l, k in enumerate(H.r):
        axpy(-np.conj(v[l]) * np.conj(H.beta), w, b[k])
    return b
