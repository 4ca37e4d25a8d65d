import copy
import itertools
import unittest

import numpy as np
import scipy.sparse
import scipy.sparse.linalg

from krylovFactorizations.base import OrthonormalBasis
from krylovFactorizations.dense.packed_hessenberg import PackedHessenberg, packed_length
from krylovFactorizations.krylov.ArnoldiIterator import ArnoldiFactorization, ArnoldiIterator, advance, shrink, \
    sizehint, start, terminated
from tests.utils import arnoldi_relation_error, get_cyclic_shift, get_random_matrix, get_random_vector, \
    orthonormality_error


class DiagonalExample(unittest.TestCase):
    def setUp(self):
        self.A = np.diag([1.0, 2.0, 3.0])
        self.v0 = np.ones(3)

    def test_start(self):
        iterator = ArnoldiIterator(self.A, self.v0)
        state = iterator.start()
        self.assertEqual(len(state), 1)
        self.assertEqual(state.status, "fresh")
        np.testing.assert_allclose(state.basis[0], np.ones(3) / np.sqrt(3))
        self.assertAlmostEqual(state.H[0], 2)
        np.testing.assert_allclose(state.residual, np.array([-1, 0, 1]) / np.sqrt(3), atol=1e-15)
        self.assertAlmostEqual(state.normres, np.sqrt(2 / 3))
        self.assertEqual(len(state.H), packed_length(1))

    def test_advance(self):
        iterator = ArnoldiIterator(self.A, self.v0)
        state = iterator.advance(iterator.start())
        self.assertEqual(len(state), 2)
        self.assertEqual(state.status, "growing")
        self.assertEqual(len(state.H), packed_length(2))
        V = state.basis.to_array()
        self.assertLess(orthonormality_error(V), 1e-14)
        self.assertLess(arnoldi_relation_error(self.A, state), 1e-14)
        # the new basis vector is the normalized residual of the first step
        np.testing.assert_allclose(V[:, 1], np.array([-1, 0, 1]) / np.sqrt(2), atol=1e-15)
        np.testing.assert_allclose(state.rayleighquotient.toarray(),
                                   [[2, np.sqrt(2 / 3)], [np.sqrt(2 / 3), 2]], atol=1e-14)

    def test_work_should_count_operator_applications(self):
        iterator = ArnoldiIterator(self.A, self.v0)
        state = iterator.start()
        self.assertEqual(iterator.work[3], 1)
        iterator.advance(state)
        self.assertEqual(iterator.work[3], 2)
        self.assertEqual(iterator.work.reset(), {3: 2})
        self.assertEqual(iterator.work[3], 0)


class ArnoldiRelation(unittest.TestCase):
    def setUp(self):
        self.rng = np.random.default_rng(44)
        self.n = 40
        self.m = 15

    def get_operators(self, complex_=False):
        A = get_random_matrix(self.n, self.rng, complex_)
        return A, {
            "dense": A,
            "sparse": scipy.sparse.csr_array(A),
            "LinearOperator": scipy.sparse.linalg.aslinearoperator(A),
            "callable": lambda x: A @ x,
        }

    def checkFactorization(self, A, state):
        V = state.basis.to_array()
        with self.subTest(f"k={len(state)}: orthonormal basis"):
            self.assertLess(orthonormality_error(V), 1e-12)
        with self.subTest(f"k={len(state)}: residual orthogonal to basis"):
            np.testing.assert_allclose(V.conj().T @ state.residual, 0, atol=1e-12)
        with self.subTest(f"k={len(state)}: Arnoldi relation"):
            self.assertLess(arnoldi_relation_error(A, state), 1e-12)
        with self.subTest(f"k={len(state)}: residual norm"):
            self.assertAlmostEqual(state.normres, scipy.linalg.norm(state.residual))
        self.assertEqual(len(state.H), packed_length(len(state)))

    def test_factorization_for_operator_kinds(self):
        for complex_ in (False, True):
            A, operators = self.get_operators(complex_)
            v0 = get_random_vector(self.n, self.rng, complex_)
            for name, operator in operators.items():
                with self.subTest(f"{name}, complex={complex_}"):
                    iterator = ArnoldiIterator(operator, v0)
                    state = iterator.start()
                    self.checkFactorization(A, state)
                    for _ in range(self.m - 1):
                        iterator.advance(state)
                        self.checkFactorization(A, state)

    def test_orthogonalizers(self):
        A, _ = self.get_operators()
        v0 = get_random_vector(self.n, self.rng)
        for orth in ("cgs2", "mgs2", "cgsr", "mgsr"):
            with self.subTest(orth):
                iterator = ArnoldiIterator(A, v0, orth)
                state = iterator.start()
                for _ in range(self.m - 1):
                    iterator.advance(state)
                self.checkFactorization(A, state)

    def test_complex_operator_with_real_start(self):
        A, _ = self.get_operators(complex_=True)
        state = start(A, get_random_vector(self.n, self.rng))
        self.assertEqual(state.eltype, np.complex128)
        self.assertEqual(state.basis[0].dtype, np.complex128)
        self.checkFactorization(A, state)

    def test_iteration_yields_snapshots(self):
        A, _ = self.get_operators()
        iterator = ArnoldiIterator(A, get_random_vector(self.n, self.rng))
        states = list(itertools.islice(iterator, 5))
        self.assertEqual([len(state) for state in states], [1, 2, 3, 4, 5])
        np.testing.assert_array_equal(states[0].basis[0], states[4].basis[0])
        self.assertIsNot(states[0].basis[0], states[4].basis[0])
        for state in states:
            self.checkFactorization(A, state)

    def test_zero_start_vector(self):
        with self.assertRaises(ValueError):
            ArnoldiIterator(np.eye(3), np.zeros(3)).start()


class Breakdown(unittest.TestCase):
    def test_breakdown_at_invariant_subspace(self):
        n = 5
        A = get_cyclic_shift(n)
        v0 = np.zeros(n)
        v0[0] = 1
        iterator = ArnoldiIterator(A, v0)
        state = iterator.start()
        statuses = [state.status]
        while not iterator.done(state):
            iterator.advance(state)
            statuses.append(state.status)
        self.assertEqual(len(state), n)
        self.assertEqual(statuses, ["fresh"] + ["growing"] * (n - 2) + ["breakdown"])
        self.assertTrue(terminated(state))
        self.assertEqual(state.normres, 0)
        np.testing.assert_array_equal(state.basis.to_array(), np.eye(n))
        np.testing.assert_array_equal(state.rayleighquotient.toarray(), A)
        with self.assertRaises(RuntimeError):
            iterator.advance(state)

    def test_breakdown_at_start(self):
        A = np.diag([1.0, 2.0, 3.0])
        state = start(A, np.array([0.0, 2.0, 0.0]))
        self.assertTrue(terminated(state))
        self.assertEqual(state.status, "breakdown")
        self.assertEqual(state.H[0], 2)

    def test_iteration_stops_at_breakdown(self):
        n = 4
        v0 = np.zeros(n)
        v0[0] = 1
        states = list(ArnoldiIterator(get_cyclic_shift(n), v0))
        self.assertEqual(len(states), n)

    def test_terminated_threshold(self):
        for dtype in (np.float32, np.float64, np.complex64, np.complex128):
            with self.subTest(dtype=dtype):
                eps = np.finfo(dtype).eps
                v = np.ones(3, dtype=dtype) / np.sqrt(3)
                H = PackedHessenberg(dtype).append(1, eps)
                state = ArnoldiFactorization(1, OrthonormalBasis([v]), H, np.zeros(3, dtype=dtype))
                self.assertFalse(terminated(state))
                state.H[-1] = eps / 2
                self.assertTrue(terminated(state))


class ShrinkAndResume(unittest.TestCase):
    def setUp(self):
        self.rng = np.random.default_rng(46)
        self.n = 30
        self.A = get_random_matrix(self.n, self.rng)
        self.iterator = ArnoldiIterator(self.A, get_random_vector(self.n, self.rng))

    def grow(self, m):
        state = self.iterator.start()
        for _ in range(m - 1):
            self.iterator.advance(state)
        return state

    def test_shrink_should_keep_leading_columns(self):
        state = self.grow(10)
        H = state.H.data.copy()
        V = list(state.basis)
        V_values = [v.copy() for v in V]
        shrink(state, 6)
        self.assertEqual(len(state), 6)
        self.assertEqual(len(state.basis), 6)
        np.testing.assert_array_equal(state.H.data, H[:packed_length(6)])
        for j in range(6):
            self.assertIs(state.basis[j], V[j])
            np.testing.assert_array_equal(state.basis[j], V_values[j])
        self.assertLess(arnoldi_relation_error(self.A, state), 1e-12)
        np.testing.assert_allclose(state.residual, V_values[6] * H[packed_length(6) - 1])
        self.assertAlmostEqual(state.normres, scipy.linalg.norm(state.residual))

    def test_advance_after_shrink(self):
        state = self.grow(10)
        reference = copy.deepcopy(state)
        self.iterator.shrink(state, 4)
        for _ in range(6):
            self.iterator.advance(state)
        self.assertEqual(len(state), 10)
        self.assertLess(orthonormality_error(state.basis.to_array()), 1e-12)
        self.assertLess(arnoldi_relation_error(self.A, state), 1e-12)
        np.testing.assert_allclose(state.rayleighquotient.toarray(), reference.rayleighquotient.toarray(),
                                   atol=1e-8)

    def test_shrink_to_larger_dimension_is_noop(self):
        state = self.grow(5)
        H = state.H.data.copy()
        shrink(state, 5)
        shrink(state, 8)
        self.assertEqual(len(state), 5)
        np.testing.assert_array_equal(state.H.data, H)
        with self.assertRaises(ValueError):
            shrink(state, 0)

    def test_resume_should_reuse_storage(self):
        state = self.grow(8)
        v = state.basis[0]
        capacity = state.H.capacity
        v1 = get_random_vector(self.n, self.rng)
        self.iterator.resume(state, v1)
        fresh = ArnoldiIterator(self.A, v1).start()
        self.assertEqual(len(state), 1)
        self.assertEqual(len(state.basis), 1)
        self.assertIs(state.basis[0], v)
        self.assertEqual(state.H.capacity, capacity)
        np.testing.assert_allclose(state.basis[0], fresh.basis[0])
        np.testing.assert_allclose(state.H.data, fresh.H.data)
        np.testing.assert_allclose(state.residual, fresh.residual)
        self.iterator.advance(state)
        self.assertLess(arnoldi_relation_error(self.A, state), 1e-12)

    def test_resume_with_wider_seed_should_match_start(self):
        A = np.diag(np.arange(1, 5)).astype(np.float32)
        iterator = ArnoldiIterator(A, np.ones(4, dtype=np.float32))
        state = iterator.advance(iterator.start())
        self.assertEqual(state.eltype, np.float32)
        v1 = np.array([1.0, 0.5, 0.25, 0.125])
        iterator.resume(state, v1)
        fresh = ArnoldiIterator(A, v1).start()
        self.assertEqual(state.basis[0].dtype, fresh.basis[0].dtype)
        self.assertEqual(state.eltype, fresh.eltype)
        self.assertEqual(state.residual.dtype, fresh.residual.dtype)
        np.testing.assert_array_equal(state.basis[0], fresh.basis[0])
        np.testing.assert_array_equal(state.H.data, fresh.H.data)
        self.assertEqual(state.status, fresh.status)

    def test_sizehint(self):
        m = 12
        state = sizehint(self.iterator.start(), m)
        capacity = state.H.capacity
        self.assertEqual(capacity, packed_length(m))
        for _ in range(m - 1):
            advance(self.iterator, state)
        self.assertEqual(len(state.H), m * (m + 3) // 2)
        self.assertEqual(state.H.capacity, capacity)


if __name__ == '__main__':
    unittest.main()
