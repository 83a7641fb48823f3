from typing import Optional

import torch


class Noise:
    @staticmethod
    def uniform(channels: int, num_samples: int, generator: Optional[torch.Generator] = None) -> torch.Tensor:
        """
        White noise drawn from Uniform(-1, 1), shape (channels, num_samples).
        generator=None draws from the global torch RNG.
        """
        u = torch.rand(channels, num_samples, generator=generator, dtype=torch.float64)
        return (u * 2.0 - 1.0).float()


def make_generator(seed: Optional[int]) -> Optional[torch.Generator]:
    """Seeded CPU generator, or None (global RNG) when seed is None."""
    if seed is None:
        return None
    gen = torch.Generator()
    gen.manual_seed(int(seed))
    return gen
