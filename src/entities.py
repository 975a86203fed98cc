"""Entity identities and the closed registry of rater/item kinds.

Raters and items are identified by a `(kind, id)` pair. The kind tag decides
which lookup table an id belongs to and is part of every store key, so an
unknown tag is rejected up front instead of being written into a namespace.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Literal, Mapping, Optional, Protocol, Union, runtime_checkable


Role = Literal["rater", "item"]
ROLES: tuple[str, ...] = ("rater", "item")


class UnresolvedEntityKind(KeyError):
    """Raised when a reference names a kind the registry does not know."""

    def __init__(self, kind: str, role: Optional[str] = None) -> None:
        self.kind = kind
        self.role = role
        msg = f"Unknown entity kind: {kind!r}" if role is None else f"Unknown {role} kind: {kind!r}"
        super().__init__(msg)

    def __str__(self) -> str:
        return str(self.args[0])


@runtime_checkable
class Rater(Protocol):
    """Anything that can like or dislike items."""

    kind: str
    id: Any


@runtime_checkable
class Item(Protocol):
    """Anything that can be liked or disliked."""

    kind: str
    id: Any


@dataclass(frozen=True, order=True)
class EntityRef:
    kind: str
    id: str

    def __post_init__(self) -> None:
        kind = "" if self.kind is None else str(self.kind).strip()
        ident = "" if self.id is None else str(self.id).strip()
        if not kind or ":" in kind:
            raise ValueError(f"Invalid entity kind: {self.kind!r}")
        if not ident:
            raise ValueError(f"Invalid entity id for kind {kind!r}: {self.id!r}")
        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "id", ident)

    @property
    def key(self) -> str:
        return f"{self.kind}:{self.id}"

    @classmethod
    def parse(cls, text: str) -> "EntityRef":
        """Parse the `kind:id` form produced by `key`."""
        raw = "" if text is None else str(text).strip()
        kind, sep, ident = raw.partition(":")
        if not sep:
            raise ValueError(f"Entity reference must look like 'kind:id', got {text!r}")
        return cls(kind=kind, id=ident)

    def __str__(self) -> str:
        return self.key


EntityLike = Union[EntityRef, Rater, Item, str]


def as_ref(obj: EntityLike) -> EntityRef:
    """Coerce a domain object, `EntityRef` or `kind:id` string into an `EntityRef`."""
    if isinstance(obj, EntityRef):
        return obj
    if isinstance(obj, str):
        return EntityRef.parse(obj)
    kind = getattr(obj, "kind", None)
    ident = getattr(obj, "id", None)
    if kind is None or ident is None:
        raise TypeError(f"Expected an object with `kind` and `id`, got {type(obj).__name__}")
    return EntityRef(kind=str(kind), id=str(ident))


Lookup = Union[Callable[[str], Any], Mapping[str, Any]]


@dataclass(frozen=True)
class _KindEntry:
    kind: str
    role: str
    lookup: Optional[Lookup] = None


@dataclass
class KindRegistry:
    """Closed set of entity kinds, each bound to a role and an optional lookup.

    A lookup is either a callable `id -> object` or a mapping keyed by id. Kinds
    without a lookup resolve to their `EntityRef`.
    """

    _entries: dict[str, _KindEntry] = field(default_factory=dict)

    def register(self, kind: str, role: Role, lookup: Optional[Lookup] = None) -> "KindRegistry":
        if role not in ROLES:
            raise ValueError(f"role must be one of {ROLES}, got {role!r}")
        kind = str(kind).strip()
        if not kind or ":" in kind:
            raise ValueError(f"Invalid entity kind: {kind!r}")
        existing = self._entries.get(kind)
        if existing is not None and existing.role != role:
            raise ValueError(f"Kind {kind!r} already registered as {existing.role}")
        self._entries[kind] = _KindEntry(kind=kind, role=role, lookup=lookup)
        return self

    @classmethod
    def from_config(cls, entities_cfg: Mapping[str, Any]) -> "KindRegistry":
        """Build from the `entities` config section: `{raters: [...], items: [...]}`."""
        reg = cls()
        for kind in _as_list(entities_cfg.get("raters", [])):
            reg.register(kind, "rater")
        for kind in _as_list(entities_cfg.get("items", [])):
            reg.register(kind, "item")
        if not reg.rater_kinds():
            raise ValueError("entities.raters must list at least one rater kind")
        return reg

    def rater_kinds(self) -> list[str]:
        return [e.kind for e in self._entries.values() if e.role == "rater"]

    def item_kinds(self) -> list[str]:
        return [e.kind for e in self._entries.values() if e.role == "item"]

    def validate(self, obj: EntityLike, role: Optional[str] = None) -> EntityRef:
        """Return the `EntityRef` for `obj`, raising `UnresolvedEntityKind` if its kind is unknown."""
        ref = as_ref(obj)
        entry = self._entries.get(ref.kind)
        if entry is None or (role is not None and entry.role != role):
            raise UnresolvedEntityKind(ref.kind, role)
        return ref

    def validate_rater(self, obj: EntityLike) -> EntityRef:
        return self.validate(obj, "rater")

    def validate_item(self, obj: EntityLike) -> EntityRef:
        return self.validate(obj, "item")

    def resolve(self, obj: EntityLike) -> Any:
        """Look up the domain object behind a reference."""
        ref = self.validate(obj)
        lookup = self._entries[ref.kind].lookup
        if lookup is None:
            return ref
        if callable(lookup):
            return lookup(ref.id)
        if ref.id not in lookup:
            raise KeyError(f"{ref.kind} not found: {ref.id}")
        return lookup[ref.id]

    def resolve_many(self, refs: Iterable[EntityLike]) -> list[Any]:
        return [self.resolve(r) for r in refs]


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]
