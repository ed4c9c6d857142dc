from __future__ import annotations

"""
Entity kinds managed by the registry.

`Shape` carries a position and the geometry interface; `Rectangle` is the
concrete kind the factory builds. Entities are plain mutable objects. The
registry applies changes to a copy and swaps it in only when `apply`
returns, so a rejected change never leaves a half-updated entity behind.

Exports:
- Entity (protocol)
- Shape, Rectangle
- KINDS, entity_class
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Protocol, Type, runtime_checkable

from ledgerlab.errors import InvalidArgument


@runtime_checkable
class Entity(Protocol):
    """What the registry needs from a kind: a view, a validated update, and a persistable state."""

    kind: str

    def snapshot(self) -> Dict[str, Any]: ...
    def apply(self, **args: Any) -> None: ...
    def to_state(self) -> Dict[str, Any]: ...

    @classmethod
    def from_state(cls, state: Mapping[str, Any]) -> "Entity": ...


def _require_int(value: Any, field: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgument(f"{field} must be an integer", field=field, value=value)
    return value


def _require_positive(value: Any, field: str) -> int:
    v = _require_int(value, field)
    if v <= 0:
        raise InvalidArgument(f"{field} must be strictly positive", field=field, value=value)
    return v


class Shape(ABC):
    """A positioned shape. Coordinates are integers and may be negative."""

    kind = "shape"

    def __init__(self, x: int = 0, y: int = 0) -> None:
        self.x = _require_int(x, "x")
        self.y = _require_int(y, "y")

    def get_x(self) -> int:
        return self.x

    def get_y(self) -> int:
        return self.y

    def move(self, dx: int, dy: int) -> None:
        dx = _require_int(dx, "dx")
        dy = _require_int(dy, "dy")
        self.x += dx
        self.y += dy

    @abstractmethod
    def area(self) -> int: ...

    @abstractmethod
    def perimeter(self) -> int: ...


class Rectangle(Shape):
    """Rectangle with strictly positive integer `longueur` (length) and `largeur` (width)."""

    kind = "rectangle"
    _APPLY_FIELDS = frozenset(("longueur", "largeur", "dx", "dy"))

    def __init__(self, longueur: int, largeur: int, x: int = 0, y: int = 0) -> None:
        super().__init__(x, y)
        self.longueur = _require_positive(longueur, "longueur")
        self.largeur = _require_positive(largeur, "largeur")

    def area(self) -> int:
        return self.longueur * self.largeur

    def perimeter(self) -> int:
        return 2 * (self.longueur + self.largeur)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "x": self.x,
            "y": self.y,
            "longueur": self.longueur,
            "largeur": self.largeur,
            "surface": self.area(),
            "perimeter": self.perimeter(),
        }

    def apply(self, **args: Any) -> None:
        """
        Resize and/or move. Accepts `longueur`, `largeur`, `dx`, `dy`; every
        value is validated before anything is assigned.
        """
        unknown = sorted(set(args) - self._APPLY_FIELDS)
        if unknown:
            raise InvalidArgument("unknown rectangle field", field=unknown[0], value=args[unknown[0]])
        if not args:
            raise InvalidArgument("no changes given")
        longueur = _require_positive(args.get("longueur", self.longueur), "longueur")
        largeur = _require_positive(args.get("largeur", self.largeur), "largeur")
        dx = _require_int(args.get("dx", 0), "dx")
        dy = _require_int(args.get("dy", 0), "dy")
        self.longueur = longueur
        self.largeur = largeur
        self.move(dx, dy)

    def to_state(self) -> Dict[str, Any]:
        return {"longueur": self.longueur, "largeur": self.largeur, "x": self.x, "y": self.y}

    @classmethod
    def from_state(cls, state: Mapping[str, Any]) -> "Rectangle":
        return cls(
            longueur=state["longueur"],
            largeur=state["largeur"],
            x=state.get("x", 0),
            y=state.get("y", 0),
        )

    def __repr__(self) -> str:
        return f"Rectangle(longueur={self.longueur}, largeur={self.largeur}, x={self.x}, y={self.y})"


KINDS: Dict[str, Type[Entity]] = {
    Rectangle.kind: Rectangle,
}


def entity_class(kind: str) -> Type[Entity]:
    try:
        return KINDS[kind]
    except KeyError:
        raise InvalidArgument("unknown entity kind", field="kind", value=kind) from None


__all__ = ["Entity", "Shape", "Rectangle", "KINDS", "entity_class"]
