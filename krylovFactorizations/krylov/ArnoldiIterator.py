import copy
import logging

import numpy as np
import scipy

from ..base import OrthonormalBasis, WorkLog, apply
from ..dense.packed_hessenberg import PackedHessenberg, packed_length
from ..orthogonalization import DEFAULT_ORTH, get_orthogonalizer

logger = logging.getLogger(__name__)


class ArnoldiFactorization:
    """Arnoldi factorization `A @ V = V @ H + r @ e_k^T` of Krylov dimension k.

    Attributes
    ----------
    k: int
        Current Krylov dimension.
    V: OrthonormalBasis
        Basis of length k.
    H: PackedHessenberg
        The k x k Hessenberg matrix in packed form. Its last entry is the norm of the residual.
    r: array_like
        Residual, orthogonal to all basis vectors.
    """

    def __init__(self, k: int, V: OrthonormalBasis, H: PackedHessenberg, r: np.array):
        self.k = k
        self.V = V
        self.H = H
        self.r = r

    def __len__(self):
        return self.k

    @property
    def basis(self) -> OrthonormalBasis:
        return self.V

    @property
    def rayleighquotient(self):
        return self.H.unpack(self.k)

    @property
    def residual(self) -> np.array:
        return self.r

    @property
    def normres(self) -> float:
        return abs(self.H[-1])

    @property
    def eltype(self):
        return self.H.dtype

    @property
    def status(self) -> str:
        if self.normres < np.finfo(self.eltype).eps:
            return "breakdown"
        return "fresh" if self.k == 1 else "growing"

    def sizehint(self, n: int):
        self.H.reserve(packed_length(n))
        return self

    def __repr__(self):
        return f"ArnoldiFactorization(k={self.k}, normres={self.normres})"


class ArnoldiIterator:
    """Iterator that grows an Arnoldi factorization of `operator` starting from `v0` one dimension at a time.

    Parameters
    ----------
    operator: array_like, sparse array, LinearOperator or callable
        Linear map, see `base.apply`.
    v0: array_like
        Starting vector, must not be zero.
    orth: str or Orthogonalizer
        Orthogonalization strategy used in the recurrence, see `orthogonalization.ORTHOGONALIZERS`.

    Iterating yields independent copies of the factorization for k = 1, 2, ... until breakdown.
    """

    def __init__(self, operator, v0: np.array, orth=DEFAULT_ORTH):
        self.operator = operator
        self.v0 = np.asarray(v0)
        self.orth = get_orthogonalizer(orth)
        self.work = WorkLog()

    def _apply(self, v):
        w = apply(self.operator, v)
        self.work.add({v.shape[0]: 1})
        return w

    def start(self) -> ArnoldiFactorization:
        beta0 = scipy.linalg.norm(self.v0)
        if beta0 == 0:
            raise ValueError("Starting vector must not be zero.")
        v = self.v0 / beta0  # division might change the dtype
        w = self._apply(v)  # and so might the operator
        v = v.astype(np.result_type(w, v))
        r, alpha = self.orth.orthogonalize(w, v)
        beta = scipy.linalg.norm(r)
        H = PackedHessenberg(dtype=np.result_type(alpha, beta))
        H.append(alpha, beta)
        logger.debug("Started Arnoldi factorization of dimension %d, normres %g", v.shape[0], beta)
        return ArnoldiFactorization(1, OrthonormalBasis([v]), H, r)

    def resume(self, state: ArnoldiFactorization, v0: np.array = None) -> ArnoldiFactorization:
        """Restart `state` from `v0` (or the iterator's starting vector), reusing its storage."""
        if v0 is not None:
            self.v0 = np.asarray(v0)
        beta0 = scipy.linalg.norm(self.v0)
        if beta0 == 0:
            raise ValueError("Starting vector must not be zero.")
        V = state.V
        while len(V) > 1:
            V.pop()
        seed = self.v0 / beta0
        w = self._apply(seed)
        dtype = np.result_type(w, seed)
        v = V[0]
        if v.shape == seed.shape and v.dtype == dtype:
            np.copyto(v, seed)
        else:
            v = seed.astype(dtype)
        V[0] = v
        r, alpha = self.orth.orthogonalize(w, v)
        beta = scipy.linalg.norm(r)
        state.H.clear(np.result_type(alpha, beta)).append(alpha, beta)
        state.k = 1
        state.r = r
        logger.debug("Resumed Arnoldi factorization from a new starting vector, normres %g", beta)
        return state

    def done(self, state: ArnoldiFactorization) -> bool:
        """Whether `state` spans an invariant subspace, i.e. its residual vanishes in working precision."""
        return state.status == "breakdown"

    def advance(self, state: ArnoldiFactorization) -> ArnoldiFactorization:
        """Grow `state` by one dimension, in place."""
        if self.done(state):
            raise RuntimeError("Attempt to advance an Arnoldi factorization that has broken down.")
        state.k += 1
        k = state.k
        V = state.V
        beta = state.normres
        r = state.r
        r *= 1 / beta
        V.append(r)
        h = state.H.grow(k + 1)
        w = self._apply(V[-1])
        r, _ = self.orth.orthogonalize(w, V, h[:k])
        beta = scipy.linalg.norm(r)
        h[k] = beta
        state.r = r
        logger.debug("Advanced Arnoldi factorization to k=%d, normres %g", k, beta)
        if self.done(state):
            logger.info("Breakdown: invariant subspace of dimension %d found", k)
        return state

    @staticmethod
    def shrink(state: ArnoldiFactorization, k: int) -> ArnoldiFactorization:
        """Truncate `state` to dimension `k`, in place. The Arnoldi relation holds for the truncated factorization."""
        if k < 1:
            raise ValueError(f"Cannot shrink an Arnoldi factorization to dimension {k}.")
        if len(state) <= k:
            return state
        V = state.V
        while len(V) > k + 1:
            V.pop()
        r = V.pop()
        state.H.resize(packed_length(k))
        state.k = k
        r *= state.normres
        state.r = r
        logger.debug("Shrunk Arnoldi factorization to k=%d", k)
        return state

    @staticmethod
    def sizehint(state: ArnoldiFactorization, n: int) -> ArnoldiFactorization:
        return state.sizehint(n)

    def __iter__(self):
        state = self.start()
        yield copy.deepcopy(state)
        while not self.done(state):
            state = self.advance(state)
            yield copy.deepcopy(state)


def start(operator, v0: np.array, orth=DEFAULT_ORTH) -> ArnoldiFactorization:
    return ArnoldiIterator(operator, v0, orth).start()


def resume(iterator: ArnoldiIterator, state: ArnoldiFactorization, v0: np.array = None) -> ArnoldiFactorization:
    return iterator.resume(state, v0)


def terminated(state: ArnoldiFactorization) -> bool:
    return state.status == "breakdown"


def advance(iterator: ArnoldiIterator, state: ArnoldiFactorization) -> ArnoldiFactorization:
    return iterator.advance(state)


def shrink(state: ArnoldiFactorization, k: int) -> ArnoldiFactorization:
    return ArnoldiIterator.shrink(state, k)


def sizehint(state: ArnoldiFactorization, n: int) -> ArnoldiFactorization:
    return state.sizehint(n)
