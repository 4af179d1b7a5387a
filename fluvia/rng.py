"""Seeded random streams for terrain generation and droplet spawning.

A run is fully described by one integer seed. Each consumer (the noise
lattice, the octave offsets, the droplet spawner) forks its own stream by
name, so adding draws to one consumer never shifts another.
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np


_SEED_MASK = (1 << 64) - 1


@dataclass(frozen=True)
class RngStream:
    seed: int

    @classmethod
    def from_entropy(cls) -> "RngStream":
        """Draw a fresh seed from the OS so the run can be replayed later."""

        return cls(int(np.random.SeedSequence().generate_state(1, np.uint64)[0]))

    def fork(self, key: str) -> "RngStream":
        """Derive the stream for one named consumer of this seed."""

        if not key:
            raise ValueError("fork key must be non-empty")
        sequence = np.random.SeedSequence(
            entropy=int(self.seed) & _SEED_MASK,
            spawn_key=tuple(key.encode("utf-8")),
        )
        return RngStream(int(sequence.generate_state(1, np.uint64)[0]))

    def generator(self) -> np.random.Generator:
        return np.random.default_rng(int(self.seed) & _SEED_MASK)
