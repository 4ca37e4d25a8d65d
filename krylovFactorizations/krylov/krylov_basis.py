import numpy as np

from ..orthogonalization import DEFAULT_ORTH
from .ArnoldiIterator import ArnoldiFactorization, ArnoldiIterator


def _dense(state: ArnoldiFactorization):
    k = len(state)
    H = np.zeros((k + 1, k), dtype=state.eltype)
    H[:k, :] = state.rayleighquotient.toarray()
    H[k, k - 1] = state.H[-1]
    breakdown = k if state.status == "breakdown" else False
    return state.residual, state.basis.to_array(), H, breakdown


def extend_arnoldi(iterator: ArnoldiIterator, state: ArnoldiFactorization, m: int):
    """Extend a given Arnoldi factorization to dimension m, or until breakdown.

    Returns
    ----------
    (r, V, H, breakdown) with the residual r, the n x k basis V, the (k + 1) x k Hessenberg matrix H whose last row
    holds the residual norm, and breakdown, which is k if an invariant subspace was found and False otherwise.
    """
    state.sizehint(m)
    while len(state) < m and not iterator.done(state):
        iterator.advance(state)
    return _dense(state)


def arnoldi(A, w: np.array, m: int, orth=DEFAULT_ORTH):
    """Calculate an Arnoldi factorization of dimension m starting from w, see `extend_arnoldi`."""
    if m < 1:
        raise ValueError(f"Krylov dimension must be positive, got {m}.")
    iterator = ArnoldiIterator(A, w, orth)
    state = iterator.start()
    return extend_arnoldi(iterator, state, m)
