"""Match predicates.

Each predicate evaluates in process (``matches``) and also renders to a
MongoDB filter (``to_mongo``) so leading Match stages can be pushed down
into the store query.
"""
from typing import Any, Dict, Iterable, Tuple

_MISSING = object()


def get_path(doc: Any, path: str, default: Any = None) -> Any:
    """Read a dotted path from a document. Lists are not traversed."""
    current = doc
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return default
        current = current[part]
    return current


def _values_at(doc: Any, path: str) -> list:
    """All values at a dotted path, flattening arrays the way MongoDB does"""
    value = get_path(doc, path, _MISSING)
    if value is _MISSING:
        return []
    if isinstance(value, list):
        return [value] + list(value)
    return [value]


class Predicate:
    def matches(self, doc: Dict[str, Any]) -> bool:
        raise NotImplementedError

    def to_mongo(self) -> Dict[str, Any]:
        raise NotImplementedError

    def __and__(self, other: "Predicate") -> "Predicate":
        return And(self, other)


class Eq(Predicate):
    """field == value (array fields match when any element equals value)"""

    def __init__(self, field: str, value: Any):
        self.field = field
        self.value = value

    def matches(self, doc):
        return self.value in _values_at(doc, self.field)

    def to_mongo(self):
        return {self.field: self.value}

    def __repr__(self):
        return f"Eq({self.field!r}, {self.value!r})"


class In(Predicate):
    """field ∈ values"""

    def __init__(self, field: str, values: Iterable[Any]):
        self.field = field
        self.values = list(values)

    def matches(self, doc):
        return any(v in self.values for v in _values_at(doc, self.field))

    def to_mongo(self):
        return {self.field: {"$in": self.values}}

    def __repr__(self):
        return f"In({self.field!r}, {self.values!r})"


class And(Predicate):
    def __init__(self, *predicates: Predicate):
        flat = []
        for predicate in predicates:
            if isinstance(predicate, And):
                flat.extend(predicate.predicates)
            elif predicate is not None:
                flat.append(predicate)
        self.predicates: Tuple[Predicate, ...] = tuple(flat)

    def matches(self, doc):
        return all(p.matches(doc) for p in self.predicates)

    def to_mongo(self):
        if not self.predicates:
            return {}
        if len(self.predicates) == 1:
            return self.predicates[0].to_mongo()
        return {"$and": [p.to_mongo() for p in self.predicates]}

    def __repr__(self):
        return f"And{self.predicates!r}"


def to_filter(predicate) -> Dict[str, Any]:
    return predicate.to_mongo() if predicate is not None else {}
