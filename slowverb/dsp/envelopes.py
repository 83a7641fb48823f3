import torch

# Reverb tail shape. Together with uniform noise this is the whole reverb character.
DECAY_EXPONENT = 2.5


def power_decay(num_samples: int, exponent: float = DECAY_EXPONENT) -> torch.Tensor:
    """
    Power-law decay envelope: env[j] = (1 - j / num_samples) ** exponent.
    env[0] == 1.0; the last value is (1 / num_samples) ** exponent, near 0.
    Monotonically non-increasing.
    """
    if num_samples <= 0:
        return torch.zeros(0)
    j = torch.arange(num_samples, dtype=torch.float64)
    return torch.pow(1.0 - j / num_samples, exponent).float()