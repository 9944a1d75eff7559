"""Summary: Cumulative exported-symbol graph across the library's history.
Why: One series per library shows how the public symbol count evolves; it is
rebuilt only when the underlying pair summaries changed the points."""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Sequence
from functools import partial
from typing import Final

from abitrack.config.profile import LIVE_VERSION
from abitrack.features.store.domain.keys import ArtifactKey, Stage
from abitrack.features.store.domain.records import (
    ABIDumpRecord,
    GraphRecord,
    PairSummaryRecord,
)
from abitrack.platform.filesystem import ensure_directory, write_text_file
from abitrack.platform.logging import logger

from ..processing_types import ItemStatus, PipelineEvent
from .protocol import PipelineLike

GRAPH_DATA_NAME: Final[str] = "graph.data"
GRAPH_IMAGE_NAME: Final[str] = "graph.svg"

_PRERELEASE: Final[re.Pattern[str]] = re.compile(r"-(alpha|beta|rc)\d*$")


def graph_points(
    order: Sequence[str],
    deltas: Mapping[str, int],
    start: int,
) -> list[list[object]]:
    """Cumulative ``[index, value, label]`` points, oldest version first.

    Only the first, last, middle and quartile points carry a label.
    """

    last = len(order) - 1
    labelled = {0, last, last // 2, last // 4, (3 * last) // 4}
    points: list[list[object]] = []
    value = start
    for index, version in enumerate(order):
        value += deltas.get(version, 0)
        label = _PRERELEASE.sub("", version) if index in labelled else ""
        points.append([index, value, label])
    return points


def value_range(points: Sequence[Sequence[object]]) -> tuple[int, int]:
    """Vertical range of the plot, padded so flat series stay visible."""

    values = [int(point[1]) for point in points if isinstance(point[1], int)]
    if not values:
        return (0, 0)
    low, high = min(values), max(values)
    delta = high - low
    padding = 5 if delta < 20 else int(delta / 20)
    return (low - padding, high + padding)


def build_graph(pipeline: PipelineLike) -> ItemStatus | None:
    ctx = pipeline.context
    store = pipeline.store
    versions = list(ctx.profile.versions)
    if not versions:
        return None

    oldest = versions[-1]
    start = sum(
        pipeline.symbol_weight(key, record)
        for key, record in store.items(Stage.ABIDUMP, oldest.number)
        if isinstance(record, ABIDumpRecord) and not pipeline.object_filter.skip(record.object)
    )

    order = [spec.number for spec in reversed(versions)]
    if len(order) > 1 and order[-1] == LIVE_VERSION:
        _ = order.pop()

    deltas: dict[str, int] = {}
    for older, newer in ctx.profile.pairs():
        summary = store.get_typed(
            ArtifactKey.for_pair(Stage.ABIREPORT, older.number, newer.number),
            PairSummaryRecord,
        )
        if summary is not None:
            deltas[newer.number] = (
                summary.added
                - summary.removed
                + summary.objects_added_symbols
                - summary.objects_removed_symbols
            )

    points = graph_points(order, deltas, start)
    key = ArtifactKey.for_library(Stage.GRAPH)
    cached = store.get_typed(key, GraphRecord)
    if cached is not None and not ctx.rebuild and cached.points == points:
        pipeline.stats.record(ItemStatus.SKIPPED)
        pipeline.log_pipeline(
            logging.DEBUG,
            PipelineEvent.ITEM_SKIPPED,
            "Graph is up to date",
            stage=Stage.GRAPH,
        )
        return ItemStatus.SKIPPED

    pipeline.stage_start(Stage.GRAPH)
    return pipeline.process_item(key, partial(_render_graph, pipeline, points), forced=True)


def _render_graph(pipeline: PipelineLike, points: list[list[object]]) -> GraphRecord:
    graph_dir = ensure_directory(pipeline.context.layout.graph_dir)
    data_path = graph_dir / GRAPH_DATA_NAME
    image_path = graph_dir / GRAPH_IMAGE_NAME

    lines = [f"{index}  {value}  {label}".rstrip() for index, value, label in points]
    write_text_file(data_path, "\n".join(lines) + "\n")

    rendered = pipeline.tools.graph.render(
        data_path,
        image_path,
        title=pipeline.context.profile.display_title,
        x_max=max(len(points) - 1, 0),
        y_range=value_range(points),
    )
    if not rendered:
        logger.warning("can't render graph for %s", pipeline.context.library)

    return GraphRecord(
        data_path=str(data_path),
        image_path=str(image_path) if rendered else None,
        points=points,
    )


__all__ = [
    "GRAPH_DATA_NAME",
    "GRAPH_IMAGE_NAME",
    "build_graph",
    "graph_points",
    "value_range",
]
