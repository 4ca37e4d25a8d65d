import logging
import time

import matplotlib.pyplot as plt
import numpy as np
import scipy
import scipy.sparse

from krylovFactorizations.krylov.ArnoldiIterator import ArnoldiIterator

n = 400
m = 40

# 2D Laplacian with a convection term, a non-symmetric sparse operator
d = scipy.sparse.diags_array([-1.2, 2, -0.8], offsets=[-1, 0, 1], shape=(20, 20))
A = scipy.sparse.kronsum(d, d, format="csr")


def ritz_values(iterator, m):
    state = iterator.start()
    state.sizehint(m)
    ks, thetas = [], []
    while len(state) < m and not iterator.done(state):
        iterator.advance(state)
        theta = scipy.linalg.eigvals(state.rayleighquotient.toarray())
        ks.extend([len(state)] * len(theta))
        thetas.extend(theta)
    return np.array(ks), np.array(thetas), state


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    rng = np.random.default_rng(33)
    iterator = ArnoldiIterator(A, rng.normal(size=n), orth="mgsr")

    start = time.time()
    ks, thetas, state = ritz_values(iterator, m)
    print(f"{len(state)} Arnoldi steps took {time.time() - start}, work {iterator.work}")
    print(f"residual norm {state.normres}")

    evals = np.linalg.eigvals(A.todense())
    plt.scatter(np.real(thetas), ks, s=4, label="Ritz values")
    plt.scatter(np.real(evals), np.zeros_like(np.real(evals)), s=4, marker="|", label="eigenvalues")
    plt.xlabel("Re")
    plt.ylabel("k")
    plt.legend(loc='upper right')
    plt.savefig("ritz_values.png")
    plt.show()
