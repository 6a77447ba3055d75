from typing import Iterable, List, Optional, Tuple

from loguru import logger

from videotube.pipeline.pagination import Page
from videotube.pipeline.predicates import And
from videotube.pipeline.stages import (
    Match,
    Paginate,
    PipelineContext,
    ResultSet,
    Sort,
    Stage,
    TextSearch,
)
from videotube.viewer import Viewer


class Pipeline:
    """An ordered list of stages over a base collection.

    The leading stages become the source query: an active TextSearch (plus
    any Matches right after it) turns into ``store.text_search``; otherwise
    leading Matches, an optional Sort and an optional Paginate are pushed
    into one ``store.find`` (and a ``store.count`` for the page totals).
    Everything after that runs in process.
    """

    def __init__(self, collection: str, stages: Iterable[Stage]):
        self.collection = collection
        self.stages: Tuple[Stage, ...] = tuple(stages)
        for position, stage in enumerate(self.stages):
            if isinstance(stage, TextSearch) and position != 0:
                raise ValueError("TextSearch must be the first stage of a pipeline")

    async def run(self, store, viewer: Optional[Viewer] = None) -> ResultSet:
        ctx = PipelineContext(store=store, viewer=viewer or Viewer.anonymous())
        result, remaining = await self._source(ctx)
        for stage in remaining:
            result = await stage.apply(result, ctx)
        return result

    async def first(self, store, viewer: Optional[Viewer] = None):
        result = await self.run(store, viewer)
        return result.documents[0] if result.documents else None

    async def page(self, store, viewer: Optional[Viewer] = None) -> Page:
        result = await self.run(store, viewer)
        if result.page is None:
            raise ValueError("Pipeline has no Paginate stage")
        return Page.from_info(result.documents, result.page)

    async def _source(self, ctx: PipelineContext) -> Tuple[ResultSet, List[Stage]]:
        stages = list(self.stages)
        search = None
        if stages and isinstance(stages[0], TextSearch):
            search = stages.pop(0)
            if not search.active:
                search = None

        predicates = []
        while stages and isinstance(stages[0], Match):
            predicates.append(stages.pop(0).predicate)
        predicate = And(*predicates) if predicates else None

        if search is not None:
            logger.debug(f"{self.collection}: text search {search.query!r}")
            docs = await ctx.store.text_search(
                self.collection, search.index, search.fields, search.query, predicate
            )
            return ResultSet(docs), stages

        sort = None
        if stages and isinstance(stages[0], Sort):
            sort = stages.pop(0).keys

        if stages and isinstance(stages[0], Paginate):
            request = stages.pop(0).request
            total = await ctx.store.count(self.collection, predicate)
            # A window past the last row is empty; the store never sees the offset
            if request.skip >= total:
                docs = []
            else:
                docs = await ctx.store.find(
                    self.collection, predicate, sort=sort, skip=request.skip, limit=request.limit
                )
            return ResultSet(docs, page=request.resolve(total)), stages

        docs = await ctx.store.find(self.collection, predicate, sort=sort)
        return ResultSet(docs), stages

    def __repr__(self):
        return f"Pipeline({self.collection!r}, {list(self.stages)!r})"
