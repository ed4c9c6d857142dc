"""
ledgerlab.registry - append-only managed entity registry.

Exports:
- EntityRegistry
- Entity, Shape, Rectangle, KINDS
"""

from .registry import EntityRegistry
from .shapes import KINDS, Entity, Rectangle, Shape, entity_class

__all__ = ["EntityRegistry", "Entity", "Shape", "Rectangle", "KINDS", "entity_class"]
