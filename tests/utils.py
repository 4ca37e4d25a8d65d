import numpy as np
import scipy


def arnoldi_relation_error(A, state):
    """Norm of A @ V - V @ H - r @ e_k^T, relative to the norm of A."""
    V = state.basis.to_array()
    H = state.rayleighquotient.toarray()
    ek = np.zeros(len(state))
    ek[-1] = 1
    E = A @ V - V @ H - np.outer(state.residual, ek)
    return scipy.linalg.norm(E) / scipy.linalg.norm(A)


def orthonormality_error(V):
    return scipy.linalg.norm(V.conj().T @ V - np.eye(V.shape[1]))


def get_random_matrix(n: int, rng: np.random.Generator, complex_=False):
    A = rng.normal(size=(n, n))
    if complex_:
        A = A + 1j * rng.normal(size=(n, n))
    return A


def get_random_vector(n: int, rng: np.random.Generator, complex_=False):
    x = rng.normal(size=n)
    if complex_:
        x = x + 1j * rng.normal(size=n)
    return x


def get_cyclic_shift(n: int):
    """Permutation matrix mapping e_i to e_{i+1 mod n}."""
    return np.roll(np.eye(n), 1, axis=0)
