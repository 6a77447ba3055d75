"""Composable pipeline stages.

A stage takes the in-flight ``ResultSet`` and returns a new one; no stage
writes to the store and no stage mutates the documents it receives.
Stages run in declared order, so the usual shape is
Match -> Sort -> Paginate -> Join -> DeriveField -> Project.
"""
from collections import defaultdict
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from videotube.pipeline.pagination import PageInfo, PageRequest, SortKeys, sort_documents
from videotube.pipeline.predicates import Predicate, get_path
from videotube.viewer import Viewer

Document = Dict[str, Any]
Derivation = Callable[[Viewer, Document], Any]


@dataclass(frozen=True)
class PipelineContext:
    store: Any  # DocumentStore
    viewer: Viewer


@dataclass(frozen=True)
class ResultSet:
    documents: List[Document]
    page: Optional[PageInfo] = None

    def with_documents(self, documents: List[Document]) -> "ResultSet":
        return replace(self, documents=documents)


class Stage:
    # True when the stage emits exactly one output row per input row, in order
    row_wise = True

    async def apply(self, result: ResultSet, ctx: PipelineContext) -> ResultSet:
        raise NotImplementedError


class Match(Stage):
    row_wise = False

    def __init__(self, predicate: Predicate):
        self.predicate = predicate

    def keep(self, doc: Document) -> bool:
        return self.predicate.matches(doc)

    async def apply(self, result, ctx):
        return result.with_documents([d for d in result.documents if self.keep(d)])

    def __repr__(self):
        return f"Match({self.predicate!r})"


class TextSearch(Stage):
    """Relevance-ranked search over text fields.

    Only valid as the first stage of a pipeline, where the engine turns it
    into the source query. An empty query makes the stage a no-op.
    """
    row_wise = False

    def __init__(self, index: str, fields: Sequence[str], query: Optional[str]):
        self.index = index
        self.fields = tuple(fields)
        self.query = (query or "").strip()

    @property
    def active(self) -> bool:
        return bool(self.query)

    async def apply(self, result, ctx):
        raise RuntimeError("TextSearch must be the first stage of a pipeline")


class Sort(Stage):
    row_wise = False

    def __init__(self, *keys: Tuple[str, int]):
        if not keys:
            raise ValueError("Sort needs at least one key")
        self.keys: SortKeys = tuple(keys)

    async def apply(self, result, ctx):
        return result.with_documents(sort_documents(result.documents, self.keys))

    def __repr__(self):
        return f"Sort{self.keys!r}"


class Paginate(Stage):
    row_wise = False

    def __init__(self, request: PageRequest):
        self.request = request

    async def apply(self, result, ctx):
        info = self.request.resolve(len(result.documents))
        return ResultSet(documents=self.request.window(result.documents), page=info)


class DeriveField(Stage):

    def __init__(self, name: str, fn: Derivation):
        self.name = name
        self.fn = fn

    async def apply(self, result, ctx):
        return result.with_documents([
            {**doc, self.name: self.fn(ctx.viewer, doc)} for doc in result.documents
        ])

    def __repr__(self):
        return f"DeriveField({self.name!r})"


class Project(Stage):
    """Keep only the listed paths.

    Dotted paths select nested fields and apply element-wise to arrays of
    sub-documents. Keyword arguments rename: ``Project(subscribed_at="created_at")``.
    """

    def __init__(self, *paths: str, **renames: str):
        self.paths = paths
        self.renames = renames
        self.tree = _path_tree(paths)

    def project(self, doc: Document) -> Document:
        out = _project(doc, self.tree)
        for target, source in self.renames.items():
            value = get_path(doc, source, _MISSING)
            if value is not _MISSING:
                out[target] = value
        return out

    async def apply(self, result, ctx):
        return result.with_documents([self.project(d) for d in result.documents])


class Join(Stage):
    """Left-outer join that attaches an array of matching documents as ``as_``.

    ``local_key`` may hold a scalar or an array; for arrays the joined list
    follows the array's order and keeps duplicates. ``where`` narrows the
    foreign query itself (e.g. picking one arm of a tagged union).

    The foreign side is fetched with a single store query for every parent
    in the result set, and the optional nested ``pipeline`` runs once over
    all fetched documents, so nested joins are batched as well. Nested
    pipelines may only contain Match and row-wise stages.
    """

    def __init__(
        self,
        from_: str,
        local_key: str,
        foreign_key: str,
        as_: str,
        pipeline: Iterable[Stage] = (),
        where: Optional[Predicate] = None,
    ):
        self.from_ = from_
        self.local_key = local_key
        self.foreign_key = foreign_key
        self.as_ = as_
        self.where = where
        self.pipeline = tuple(pipeline)
        for stage in self.pipeline:
            if not (stage.row_wise or isinstance(stage, Match)):
                raise ValueError(f"{type(stage).__name__} cannot run inside a Join pipeline")

    def _local_values(self, doc: Document) -> List[Any]:
        value = get_path(doc, self.local_key)
        if value is None:
            return []
        if isinstance(value, list):
            return [v for v in value if v is not None]
        return [value]

    async def _fetch(self, docs: List[Document], ctx: PipelineContext) -> Tuple[List[Document], List[Any]]:
        wanted = []
        for doc in docs:
            for value in self._local_values(doc):
                if value not in wanted:
                    wanted.append(value)
        if not wanted:
            return [], []
        foreign = await ctx.store.join(self.from_, self.foreign_key, wanted, self.where)
        keys = [get_path(f, self.foreign_key) for f in foreign]

        for stage in self.pipeline:
            if isinstance(stage, Match):
                kept = [(f, k) for f, k in zip(foreign, keys) if stage.keep(f)]
                foreign = [f for f, _ in kept]
                keys = [k for _, k in kept]
            else:
                foreign = (await stage.apply(ResultSet(foreign), ctx)).documents
        return foreign, keys

    async def apply(self, result, ctx):
        foreign, keys = await self._fetch(result.documents, ctx)
        grouped = defaultdict(list)
        for key, doc in zip(keys, foreign):
            grouped[key].append(doc)

        joined = []
        for doc in result.documents:
            matches = []
            for value in self._local_values(doc):
                matches.extend(grouped.get(value, []))
            joined.append({**doc, self.as_: matches})
        return result.with_documents(joined)

    def __repr__(self):
        return f"Join({self.from_!r}, {self.local_key!r} -> {self.foreign_key!r} as {self.as_!r})"


# Derivations -----------------------------------------------------------

def _array(doc: Document, field: str) -> list:
    value = get_path(doc, field)
    return value if isinstance(value, list) else []


def size_of(field: str) -> Derivation:
    return lambda viewer, doc: len(_array(doc, field))


def viewer_in(field: str, path: str) -> Derivation:
    """True iff the caller's id appears at ``path`` in any element of ``field``"""
    return lambda viewer, doc: viewer.is_among(get_path(item, path) for item in _array(doc, field))


def value_in(value: Any, field: str, path: str) -> Derivation:
    return lambda viewer, doc: any(get_path(item, path) == value for item in _array(doc, field))


def first_of(field: str) -> Derivation:
    def first(viewer, doc):
        items = _array(doc, field)
        return items[0] if items else None
    return first


def last_of(field: str) -> Derivation:
    def last(viewer, doc):
        items = _array(doc, field)
        return items[-1] if items else None
    return last


def latest_of(field: str, by: str = "created_at") -> Derivation:
    def latest(viewer, doc):
        items = sort_documents(_array(doc, field), ((by, -1), ("_id", -1)))
        return items[0] if items else None
    return latest


def sum_of(field: str, path: str) -> Derivation:
    return lambda viewer, doc: sum(
        get_path(item, path) or 0 for item in _array(doc, field)
    )


# Projection helpers ----------------------------------------------------

_MISSING = object()


def _path_tree(paths: Iterable[str]) -> Dict[str, Any]:
    tree: Dict[str, Any] = {}
    for path in paths:
        node = tree
        parts = path.split(".")
        for part in parts[:-1]:
            child = node.get(part)
            if child is True:
                break
            node = node.setdefault(part, {})
        else:
            node[parts[-1]] = True
    return tree


def _project(value: Any, tree: Dict[str, Any]) -> Any:
    if isinstance(value, list):
        return [_project(v, tree) for v in value if isinstance(v, dict)]
    out = {}
    for key, sub in tree.items():
        if key not in value:
            continue
        child = value[key]
        if sub is True:
            out[key] = child
        elif isinstance(child, (dict, list)):
            out[key] = _project(child, sub)
        elif child is None:
            out[key] = None
    return out
