import numpy as np
import scipy

from .base import OrthonormalBasis


class Orthogonalizer:
    """Base class for strategies that remove the components of a vector along a vector or an orthonormal basis.

    `orthogonalize(w, v)` with a single vector `v` returns `(w - alpha * v, alpha)`.
    `orthogonalize(w, V, h)` with an `OrthonormalBasis` `V` of length k returns the residual and the k removed
    coefficients. If `h` is given, the coefficients are written into it (it may be a view into other storage).

    `w` itself is never modified.
    """

    def orthogonalize(self, w: np.array, target, h: np.array = None):
        r = np.array(w, dtype=np.result_type(w.dtype, *{v.dtype for v in self._vectors(target)}), copy=True)
        if isinstance(target, OrthonormalBasis):
            if h is None:
                h = np.zeros(len(target), dtype=r.dtype)
            elif len(h) != len(target):
                raise ValueError(f"Coefficient buffer of length {len(h)} does not match basis of length {len(target)}.")
            else:
                h[:] = 0
            r = self._orthogonalize_basis(r, target, h)
            return r, h
        if target.shape != r.shape:
            raise ValueError(f"Vector shapes {r.shape} and {target.shape} do not match.")
        return self._orthogonalize_vector(r, target)

    @staticmethod
    def _vectors(target):
        if isinstance(target, OrthonormalBasis):
            return target.vecs
        return [target]

    def _orthogonalize_vector(self, r, v):
        alpha = np.vdot(v, r)
        r -= alpha * v
        return r, alpha

    def _orthogonalize_basis(self, r, V, h):
        raise NotImplementedError


class ClassicalGramSchmidt(Orthogonalizer):
    """All coefficients are computed from the original vector before any of them is removed."""

    def _orthogonalize_basis(self, r, V, h):
        c = [np.vdot(v, r) for v in V]
        for i, v in enumerate(V):
            h[i] += c[i]
            r -= c[i] * v
        return r


class ModifiedGramSchmidt(Orthogonalizer):
    """The components are removed one basis vector at a time."""

    def _orthogonalize_basis(self, r, V, h):
        for i, v in enumerate(V):
            c = np.vdot(v, r)
            h[i] += c
            r -= c * v
        return r


class ClassicalGramSchmidt2(ClassicalGramSchmidt):
    """Classical Gram-Schmidt, applied twice."""

    def _orthogonalize_vector(self, r, v):
        r, alpha = super()._orthogonalize_vector(r, v)
        r, s = super()._orthogonalize_vector(r, v)
        return r, alpha + s

    def _orthogonalize_basis(self, r, V, h):
        r = super()._orthogonalize_basis(r, V, h)
        return super()._orthogonalize_basis(r, V, h)


class ModifiedGramSchmidt2(ModifiedGramSchmidt):
    """Modified Gram-Schmidt, applied twice."""

    def _orthogonalize_vector(self, r, v):
        r, alpha = super()._orthogonalize_vector(r, v)
        r, s = super()._orthogonalize_vector(r, v)
        return r, alpha + s

    def _orthogonalize_basis(self, r, V, h):
        r = super()._orthogonalize_basis(r, V, h)
        return super()._orthogonalize_basis(r, V, h)


class _IterativeRefinement:
    """Repeat the orthogonalization as long as a pass shrinks the vector below `eta` times its previous norm.

    A pass that removes a large part of the vector indicates cancellation, so the result is orthogonalized again.
    """

    def __init__(self, eta=1 / np.sqrt(2)):
        if not 0 < eta < 1:
            raise ValueError(f"`eta` must lie in (0, 1), got {eta}.")
        self.eta = eta

    def _orthogonalize_vector(self, r, v):
        nold = scipy.linalg.norm(r)
        r, alpha = super()._orthogonalize_vector(r, v)
        nnew = scipy.linalg.norm(r)
        while nnew < self.eta * nold:
            nold = nnew
            r, s = super()._orthogonalize_vector(r, v)
            alpha += s
            nnew = scipy.linalg.norm(r)
        return r, alpha

    def _orthogonalize_basis(self, r, V, h):
        nold = scipy.linalg.norm(r)
        r = super()._orthogonalize_basis(r, V, h)
        nnew = scipy.linalg.norm(r)
        while nnew < self.eta * nold:
            nold = nnew
            r = super()._orthogonalize_basis(r, V, h)
            nnew = scipy.linalg.norm(r)
        return r

    def __repr__(self):
        return f"{type(self).__name__}(eta={self.eta})"


class ClassicalGramSchmidtIR(_IterativeRefinement, ClassicalGramSchmidt):
    pass


class ModifiedGramSchmidtIR(_IterativeRefinement, ModifiedGramSchmidt):
    pass


ORTHOGONALIZERS = {
    "cgs": ClassicalGramSchmidt,
    "mgs": ModifiedGramSchmidt,
    "cgs2": ClassicalGramSchmidt2,
    "mgs2": ModifiedGramSchmidt2,
    "cgsr": ClassicalGramSchmidtIR,
    "mgsr": ModifiedGramSchmidtIR,
}

DEFAULT_ORTH = ModifiedGramSchmidtIR()


def get_orthogonalizer(orth) -> Orthogonalizer:
    """Return an orthogonalizer instance for a registry name, an `Orthogonalizer` class or instance."""
    if isinstance(orth, Orthogonalizer):
        return orth
    if isinstance(orth, type) and issubclass(orth, Orthogonalizer):
        return orth()
    if orth not in ORTHOGONALIZERS:
        raise ValueError(f"`orth` must be one of {list(ORTHOGONALIZERS)} or an Orthogonalizer.")
    return ORTHOGONALIZERS[orth]()


def orthogonalize(w: np.array, target, h: np.array = None, orth=DEFAULT_ORTH):
    return get_orthogonalizer(orth).orthogonalize(w, target, h)
