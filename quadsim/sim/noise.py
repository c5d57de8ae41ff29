"""Composable noise classes for the simulated sensors.

Each sensor channel owns a noise object. Channels of the same sensor model share one random number
generator so that seeding the model makes all of its channels deterministic at once.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from numpy.typing import NDArray


class Noise:
    """Base class for noise applied to sensor measurements."""

    def __init__(self, dim: int, np_random: np.random.Generator | None = None):
        """Initialize basic parameters.

        Args:
            dim: The dimensionality of the noise.
            np_random: The random number generator. A fresh, randomly seeded generator if None.
        """
        self.dim = dim
        self.np_random = np_random if np_random is not None else np.random.default_rng()

    def reset(self):
        """Reset the noise to its initial state."""

    def apply(self, target: NDArray[np.floating]) -> NDArray[np.floating]:
        """Apply the noise to the target.

        Args:
            target: The target to apply the noise to. By default, no noise is applied.

        Returns:
            The noisy target.
        """
        return target

    def seed(self, np_random: np.random.Generator | int | None = None):
        """Replace the random number generator for deterministic behaviour.

        Args:
            np_random: A generator to share, or the seed of a new generator. If None, the seed is
                random.
        """
        if not isinstance(np_random, np.random.Generator):
            np_random = np.random.default_rng(np_random)
        self.np_random = np_random
        self.reset()


class GaussianNoise(Noise):
    """I.i.d Gaussian noise per measurement on top of a constant, randomly drawn bias.

    The bias is drawn once on creation and on every :meth:`reset`. It stays constant in between,
    which models the slowly varying offset of real MEMS sensors.
    """

    def __init__(
        self,
        dim: int,
        std: float | NDArray[np.floating] = 1.0,
        bias_std: float | NDArray[np.floating] = 0.0,
        np_random: np.random.Generator | None = None,
    ):
        """Initialize the Gaussian noise.

        Args:
            dim: The dimensionality of the noise.
            std: The standard deviation of the per-measurement noise.
            bias_std: The standard deviation of the constant bias.
            np_random: The random number generator.
        """
        super().__init__(dim, np_random)
        self.std = np.broadcast_to(np.asarray(std, dtype=float), (dim,)).copy()
        self.bias_std = np.broadcast_to(np.asarray(bias_std, dtype=float), (dim,)).copy()
        assert np.all(self.std >= 0), "std must be non-negative."
        assert np.all(self.bias_std >= 0), "bias_std must be non-negative."
        self.bias = np.zeros(dim)
        self.reset()

    def reset(self):
        """Draw a new bias."""
        self.bias = self.np_random.normal(0.0, self.bias_std, size=self.dim)

    def apply(self, target: NDArray[np.floating]) -> NDArray[np.floating]:
        """Apply bias and noise to the target.

        Args:
            target: The target to apply the noise to.

        Returns:
            The noisy target.
        """
        return target + self.bias + self.np_random.normal(0.0, self.std, size=self.dim)
