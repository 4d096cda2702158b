"""Service layer for the migration application."""

from .identity_map import IdentityConflict, IdentityMapRegistry
from .transformer import TransformEngine
from .projector import RowProjector
from .projections import build_default_catalog

__all__ = [
    "IdentityConflict",
    "IdentityMapRegistry",
    "TransformEngine",
    "RowProjector",
    "build_default_catalog",
]
