from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field


class ZoningTypeConfig(BaseModel):
    label: str
    color: str | None = None
    subTypes: list[str] = Field(default_factory=list)


class ZoningVocabulary(BaseModel):
    unknownLabel: str = "Unknown"
    types: list[ZoningTypeConfig] = Field(default_factory=list)

    @property
    def labels(self) -> tuple[str, ...]:
        return tuple(t.label for t in self.types)

    def breakdown_labels(self) -> tuple[str, ...]:
        """Known labels plus the catch-all, in display order."""
        return (*self.labels, self.unknownLabel)

    def bucket(self, zoning_type: str | None) -> str:
        if zoning_type is not None and zoning_type in self.labels:
            return zoning_type
        return self.unknownLabel


def _vocabulary_path() -> Path:
    raw = (os.getenv("ZONING_LABELS_PATH") or "").strip()
    if raw:
        return Path(raw)
    return Path(__file__).resolve().with_name("labels.yaml")


def _load_yaml(path: Path) -> dict:
    raw = path.read_text(encoding="utf-8")
    data = yaml.safe_load(raw) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Invalid zoning vocabulary yaml root: {path}")
    return data


@lru_cache(maxsize=1)
def get_vocabulary() -> ZoningVocabulary:
    path = _vocabulary_path()
    vocab = ZoningVocabulary.model_validate(_load_yaml(path))
    if not vocab.types:
        raise ValueError(f"Zoning vocabulary defines no types: {path}")
    return vocab


def clear_vocabulary_cache() -> None:
    get_vocabulary.cache_clear()
