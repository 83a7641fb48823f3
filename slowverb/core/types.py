import math
from dataclasses import dataclass, field, asdict
from typing import Dict, Any, Optional

import torch


@dataclass(frozen=True)
class SourceAudio:
    """Decoded audio asset. samples: float32 tensor shaped (channels, frames)."""
    samples: torch.Tensor
    sample_rate: int
    name: Optional[str] = None

    @property
    def channels(self) -> int:
        return int(self.samples.shape[0]) if self.samples.dim() == 2 else 0

    @property
    def frames(self) -> int:
        return int(self.samples.shape[-1]) if self.samples.dim() >= 1 else 0

    @property
    def duration(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return self.frames / float(self.sample_rate)


@dataclass(frozen=True)
class RenderedBuffer:
    """Output of an offline render. Values may exceed [-1, 1]."""
    samples: torch.Tensor
    sample_rate: int

    @property
    def channels(self) -> int:
        return int(self.samples.shape[0])

    @property
    def frames(self) -> int:
        return int(self.samples.shape[-1])

    @property
    def duration(self) -> float:
        return self.frames / float(self.sample_rate)


@dataclass
class EffectParameters:
    speed: float = 0.85
    reverb_wet: float = 0.4
    reverb_decay: float = 2.5

    def validate(self) -> None:
        """Raise ValueError when a value is outside its domain."""
        if not math.isfinite(self.speed) or self.speed <= 0:
            raise ValueError(f"speed must be > 0, got {self.speed}")
        if not math.isfinite(self.reverb_wet) or not 0.0 <= self.reverb_wet <= 1.0:
            raise ValueError(f"reverb_wet must be in [0, 1], got {self.reverb_wet}")
        if not math.isfinite(self.reverb_decay) or self.reverb_decay <= 0:
            raise ValueError(f"reverb_decay must be > 0 seconds, got {self.reverb_decay}")

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, params: Dict[str, Any]) -> "EffectParameters":
        """Build from a resolved params dict. Unknown keys are ignored."""
        return cls(
            speed=float(params["speed"]),
            reverb_wet=float(params["reverb_wet"]),
            reverb_decay=float(params["reverb_decay"]),
        )


@dataclass
class ExportResult:
    filename: str
    data: bytes
    metadata: Dict[str, Any] = field(default_factory=dict)
