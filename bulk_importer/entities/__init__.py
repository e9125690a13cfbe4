"""Entity profile registry."""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from typing import Any

from .catalog import CATEGORIA, CONTA_DRE, GRUPO, INDICADOR
from .commercial import CLIENTE, DESPESA_VENDEDOR, META_VENDA, VENDA
from .ledger import LANCAMENTO
from .profile import Column, EntityProfile, UploadContext

__all__ = [
    "PROFILES",
    "UnknownEntityError",
    "EntityProfile",
    "Column",
    "UploadContext",
    "get_profile",
    "entity_names",
]

PROFILES: dict[str, EntityProfile] = {
    p.name: p
    for p in (
        CATEGORIA,
        GRUPO,
        INDICADOR,
        LANCAMENTO,
        CLIENTE,
        VENDA,
        DESPESA_VENDEDOR,
        META_VENDA,
        CONTA_DRE,
    )
}


class UnknownEntityError(KeyError):
    pass


def entity_names() -> list[str]:
    return list(PROFILES)


def get_profile(name: str, overrides: Mapping[str, Any] | None = None) -> EntityProfile:
    """Look up a profile, applying entities.<name> overrides from config.

    Recognized override keys: table, insert_mode, on_existing.
    """
    try:
        profile = PROFILES[name]
    except KeyError as e:
        raise UnknownEntityError(f"unknown entity: {name} (known: {', '.join(PROFILES)})") from e
    if not overrides:
        return profile
    changes = {k: overrides[k] for k in ("table", "insert_mode", "on_existing") if overrides.get(k)}
    return dataclasses.replace(profile, **changes) if changes else profile
