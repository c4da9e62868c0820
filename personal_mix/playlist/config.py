from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class ScoringConfig:
    """Weights for the history-based track score."""
    baseline: float = 1.0
    play_weight: float = 1.0
    recency_boost: float = 0.5
    recency_half_life_days: float = 30.0
    favourite_bonus: float = 1.5
    rating_weight: float = 0.1


@dataclass(frozen=True)
class RecommenderConfig:
    seed_count: int = 20
    similar_per_seed: int = 10
    similarity_decay: float = 0.9
    arms_per_strategy: int = 5
    tracks_per_arm: int = 10
    affinity_weight: float = 0.5
    min_seed_confirmations: int = 2
    favourite_limit: int = 50
    parallel: bool = False


@dataclass(frozen=True)
class AssemblyConfig:
    shuffle_window: int = 10
    allow_final_overshoot: bool = False


@dataclass(frozen=True)
class PlaylistConfig:
    """One configured playlist to generate per run."""
    name: str = "My Personal Mix"
    user_name: str = "username"
    duration_minutes: int = 360
    library_ids: Tuple[str, ...] = ()
    exploration_coefficient: float = 3.0
    exclude_seconds: int = 0
    experimental_filter: bool = False

    @property
    def duration_ms(self) -> int:
        return int(self.duration_minutes) * 60 * 1000


@dataclass(frozen=True)
class GenerationSettings:
    """Run-wide tuning shared by every configured playlist."""
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    recommender: RecommenderConfig = field(default_factory=RecommenderConfig)
    assembly: AssemblyConfig = field(default_factory=AssemblyConfig)


def _build(cls, section: Optional[Dict[str, Any]], name: str):
    section = dict(section or {})
    known = set(cls.__dataclass_fields__)
    unknown = sorted(set(section) - known)
    if unknown:
        raise ValueError(f"Unknown keys in {name}: {', '.join(unknown)}")
    return cls(**section)


def _require_non_negative(section, name: str, fields) -> None:
    for key in fields:
        value = float(getattr(section, key))
        if not math.isfinite(value) or value < 0:
            raise ValueError(f"{name}.{key} must be a finite value >= 0, got {value}")


def settings_from_dict(raw: Optional[Dict[str, Any]]) -> GenerationSettings:
    """
    Build GenerationSettings from the scoring/recommender/assembly sections
    of config.yaml. Missing sections keep their defaults.
    """
    raw = raw or {}
    scoring = _build(ScoringConfig, raw.get("scoring"), "scoring")
    recommender = _build(RecommenderConfig, raw.get("recommender"), "recommender")
    assembly = _build(AssemblyConfig, raw.get("assembly"), "assembly")

    _require_non_negative(
        scoring, "scoring",
        ("baseline", "play_weight", "recency_boost", "favourite_bonus", "rating_weight"),
    )
    _require_non_negative(recommender, "recommender", ("affinity_weight",))
    if scoring.recency_half_life_days <= 0:
        raise ValueError("scoring.recency_half_life_days must be > 0")
    if recommender.seed_count < 1:
        raise ValueError("recommender.seed_count must be >= 1")
    if not 0 < recommender.similarity_decay <= 1:
        raise ValueError("recommender.similarity_decay must be in (0, 1]")
    if assembly.shuffle_window < 1:
        raise ValueError("assembly.shuffle_window must be >= 1")

    return GenerationSettings(scoring=scoring, recommender=recommender, assembly=assembly)


def playlist_config_from_dict(entry: Dict[str, Any]) -> PlaylistConfig:
    """Parse one entry of the `playlists` list."""
    if not isinstance(entry, dict):
        raise ValueError(f"Playlist entry must be a mapping, got {type(entry).__name__}")

    library_ids = entry.get("library_ids") or []
    if isinstance(library_ids, str):
        library_ids = [library_ids]

    cfg = PlaylistConfig(
        name=str(entry.get("name", PlaylistConfig.name)),
        user_name=str(entry.get("user", entry.get("user_name", PlaylistConfig.user_name))),
        duration_minutes=int(entry.get("duration_minutes", PlaylistConfig.duration_minutes)),
        library_ids=tuple(str(i) for i in library_ids),
        exploration_coefficient=float(
            entry.get("exploration_coefficient", PlaylistConfig.exploration_coefficient)
        ),
        exclude_seconds=int(entry.get("exclude_seconds", PlaylistConfig.exclude_seconds)),
        experimental_filter=bool(entry.get("experimental_filter", False)),
    )
    if not cfg.name.strip():
        raise ValueError("Playlist name must not be empty")
    if not math.isfinite(cfg.exploration_coefficient) or cfg.exploration_coefficient < 0:
        raise ValueError(
            f"exploration_coefficient must be a finite value >= 0 (playlist '{cfg.name}')"
        )
    if cfg.exclude_seconds < 0:
        raise ValueError(f"exclude_seconds must be >= 0 (playlist '{cfg.name}')")
    return cfg


def playlist_configs_from_list(entries: Optional[List[Any]]) -> List[PlaylistConfig]:
    return [playlist_config_from_dict(e) for e in (entries or [])]
