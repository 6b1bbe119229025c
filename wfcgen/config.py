# wfcgen/config.py
# WO-09: GenerationConfig: explicit parameter object for one run

from __future__ import annotations
from dataclasses import dataclass, asdict, fields, replace
from typing import Any, Dict, Optional, Tuple

from wfcgen.op.extract import GROUND_POLICIES
from wfcgen.op.reconstruct import BACKGROUND
from wfcgen.op.world import WALL, WORLD_SCALE


@dataclass(frozen=True)
class GenerationConfig:
    """
    Every knob of a generation run.

    Defaults are the maze setup: 12×12 output, 3×3 fragments,
    reflection and rotation on, open boundary, no ground partition.
    """
    source_image: str
    output_width: int = 12
    output_height: int = 12
    fragment_width: int = 3
    fragment_height: int = 3
    allow_reflection: bool = True
    allow_rotation: bool = True
    periodic: bool = False
    contains_ground: bool = False
    random_seed: Optional[int] = None
    max_attempts: int = 1
    ground_policy: str = "base"
    intern_constraints: bool = False
    verify_assignment: bool = False
    background_color: Tuple[int, int, int, int] = BACKGROUND
    wall_color: Tuple[int, int, int, int] = WALL
    world_scale: float = WORLD_SCALE

    def validate(self) -> None:
        """
        Raises:
            ValueError: on any parameter that cannot produce a run
        """
        if not self.source_image:
            raise ValueError("source_image is required")
        if self.fragment_width <= 0 or self.fragment_height <= 0:
            raise ValueError(
                f"Fragment size must be positive, got {self.fragment_width}x{self.fragment_height}"
            )
        if self.output_width < self.fragment_width or self.output_height < self.fragment_height:
            raise ValueError(
                f"Output {self.output_width}x{self.output_height} smaller than fragment "
                f"{self.fragment_width}x{self.fragment_height}"
            )
        if self.allow_rotation and self.fragment_width != self.fragment_height:
            raise ValueError(
                f"Rotation requires square fragments, got {self.fragment_width}x{self.fragment_height}"
            )
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.random_seed is not None and self.random_seed < 0:
            raise ValueError(f"random_seed must be non-negative, got {self.random_seed}")
        if self.ground_policy not in GROUND_POLICIES:
            raise ValueError(f"Unknown ground_policy {self.ground_policy!r}, must be in {GROUND_POLICIES}")
        for name in ("background_color", "wall_color"):
            color = getattr(self, name)
            if len(color) != 4 or not all(0 <= int(c) <= 255 for c in color):
                raise ValueError(f"{name} must be 4 channels in 0..255, got {color!r}")
        if self.world_scale <= 0:
            raise ValueError(f"world_scale must be positive, got {self.world_scale}")

    def with_seed(self, seed: Optional[int]) -> "GenerationConfig":
        return replace(self, random_seed=seed)

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["background_color"] = list(self.background_color)
        d["wall_color"] = list(self.wall_color)
        return d

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "GenerationConfig":
        """
        Build from a plain dict (e.g. parsed JSON).

        Raises:
            ValueError: on unknown keys
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(d) - known)
        if unknown:
            raise ValueError(f"Unknown config keys: {unknown}")
        kwargs = dict(d)
        for name in ("background_color", "wall_color"):
            if name in kwargs:
                kwargs[name] = tuple(int(c) for c in kwargs[name])
        return cls(**kwargs)
