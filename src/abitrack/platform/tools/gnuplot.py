"""Render the exported-symbols timeline with gnuplot."""

from __future__ import annotations

from pathlib import Path
from typing import final

from abitrack.platform.filesystem import ensure_parent_directory

from .runner import ToolRunner


@final
class GraphRenderer:
    def __init__(self, runner: ToolRunner, *, executable: str = "gnuplot") -> None:
        self._runner: ToolRunner = runner
        self.executable: str = executable

    def render(
        self,
        data_path: Path,
        image_path: Path,
        *,
        title: str,
        x_max: int,
        y_range: tuple[int, int],
    ) -> bool:
        """Plot ``data_path`` (index, value, label) as an SVG line chart."""

        _ = ensure_parent_directory(image_path)
        label = title.replace("'", "''")
        script = ";".join(
            [
                "set title ''",
                f"set xlabel '{label} version'",
                "set ylabel 'ABI symbols'",
                f"set xrange [0:{x_max}]",
                f"set yrange [{y_range[0]}:{y_range[1]}]",
                "set terminal svg size 380,300",
                f"set output '{image_path}'",
                "set nokey",
                "set xtics font 'Times, 12'",
                "set ytics font 'Times, 12'",
                "set xlabel font 'Times, 12'",
                "set ylabel font 'Times, 12'",
                "set style line 1 linecolor rgbcolor 'red' linewidth 2",
                "set style increment user",
                f"plot '{data_path}' using 2:xticlabels(3) with lines",
            ]
        )
        _ = self._runner.run([self.executable, "-e", script], tool="gnuplot")
        return image_path.is_file()


__all__ = ["GraphRenderer"]
