from abc import ABC, abstractmethod

import numpy as np

from ..random_gen import CounterState


class SketchingOperator(ABC):
    """
    A random linear map described by a distribution and a seed state.

    Storage is attached on demand. `next_state` depends only on the
    distribution and the seed, so it is valid before and after realization.
    If the operator allocated its own storage (`own_memory`), `release` drops
    it; storage supplied by the caller is never released by the operator.
    """

    def __init__(self, dist, seed_state: CounterState, next_state: CounterState):
        self.dist = dist
        self.seed_state = seed_state
        self.next_state = next_state
        self.own_memory = False

    @property
    def n_rows(self) -> int:
        return self.dist.n_rows

    @property
    def n_cols(self) -> int:
        return self.dist.n_cols

    @property
    def shape(self):
        return self.dist.n_rows, self.dist.n_cols

    @property
    @abstractmethod
    def is_materialized(self) -> bool:
        pass

    @abstractmethod
    def realize(self):
        """Sample the operator into storage. No-op if already materialized."""

    @abstractmethod
    def to_dense(self) -> np.ndarray:
        """The operator as an explicit (n_rows, n_cols) array."""

    @abstractmethod
    def release(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False
