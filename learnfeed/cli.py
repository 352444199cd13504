"""
Typer CLI for the learnfeed pipeline.

Commands:
    learnfeed chunk ARTICLE.txt          - Decompose text into propositions and chunk it
    learnfeed boundaries UNITS.txt       - Show similarity valleys between text units
    learnfeed segment TRANSCRIPT.json    - Cut a timed transcript into video segments
    learnfeed feed INPUT.json            - Assemble a learning feed from concepts or chunks

Usage:
    learnfeed --help
    learnfeed chunk article.txt --output-json chunks.json
    learnfeed segment transcript.json --min 180 --max 600
    learnfeed feed chunks.json --kind text --performance 70
"""

from __future__ import annotations

import json
import random
import sys
from pathlib import Path
from typing import Any

import typer
from loguru import logger
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from learnfeed.config import get_settings
from learnfeed.errors import PipelineError

app = typer.Typer(
    help="learnfeed: segment learning content and assemble paced feeds",
    no_args_is_help=True,
)

console = Console()


def configure_logging(level: str, log_file: str | None = None) -> None:
    """Route loguru output to stderr (and optionally a rotating file)."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )
    if log_file:
        logger.add(log_file, level=level, rotation="10 MB", retention=3)


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Segment learning content and assemble paced feeds."""
    settings = get_settings()
    configure_logging("DEBUG" if verbose else settings.log_level, settings.log_file)


def _fail(error: PipelineError) -> None:
    console.print(f"[red]Error ({error.code.value}): {escape(error.message)}[/red]")
    raise typer.Exit(1)


def _read_json(path: Path) -> Any:
    if not path.exists():
        console.print(f"[red]Error: File not found: {path}[/red]")
        raise typer.Exit(1)
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        console.print(f"[red]Error: Invalid JSON in {path}: {escape(str(e))}[/red]")
        raise typer.Exit(1)


def _write_json(path: Path, payload: Any) -> None:
    path.write_text(json.dumps(payload, indent=2, default=str), encoding="utf-8")
    console.print(f"[green]Saved to {path}[/green]")


# ========================================
# Chunking
# ========================================


@app.command("chunk")
def chunk_command(
    source: Path = typer.Argument(..., help="Plain-text article"),
    output_json: Path = typer.Option(None, "--output-json", "-o", help="Save chunks to JSON"),
    prefix: str = typer.Option(None, "--prefix", help="Chunk id prefix"),
):
    """Decompose an article into propositions and group them into chunks."""
    from learnfeed.processing.text_chunking_pipeline import TextChunkingPipeline

    if not source.exists():
        console.print(f"[red]Error: File not found: {source}[/red]")
        raise typer.Exit(1)

    try:
        pipeline = TextChunkingPipeline(chunk_id_prefix=prefix)
        chunks = pipeline.chunk_text(source.read_text(encoding="utf-8"))
    except PipelineError as e:
        _fail(e)

    table = Table(title=f"Chunks ({len(chunks)})")
    table.add_column("ID", style="cyan")
    table.add_column("Range", justify="right")
    table.add_column("Props", justify="right")
    table.add_column("Preview")
    for chunk in chunks:
        table.add_row(
            chunk.id,
            f"{chunk.start_index}-{chunk.end_index}",
            str(len(chunk.propositions)),
            chunk.text[:80],
        )
    console.print(table)

    if output_json:
        _write_json(output_json, {"chunks": [c.to_dict() for c in chunks]})


@app.command("boundaries")
def boundaries_command(
    source: Path = typer.Argument(..., help="Text units, one per line (or a JSON list)"),
    std_devs: float = typer.Option(None, "--std-devs", help="Std-dev multiplier k"),
    min_drop: float = typer.Option(None, "--min-drop", help="Minimum similarity drop"),
):
    """Show consecutive similarities and detected topic boundaries."""
    from learnfeed.semantic.boundary_service import SemanticBoundaryService

    if not source.exists():
        console.print(f"[red]Error: File not found: {source}[/red]")
        raise typer.Exit(1)

    raw = source.read_text(encoding="utf-8")
    units = json.loads(raw) if source.suffix == ".json" else raw.splitlines()

    try:
        service = SemanticBoundaryService(
            std_dev_multiplier=std_devs, min_similarity_drop=min_drop
        )
        result = service.find_boundaries_with_metadata(units)
    except PipelineError as e:
        _fail(e)

    console.print(
        f"mean={result.mean_similarity:.3f}  std={result.std_dev_similarity:.3f}  "
        f"threshold={result.threshold:.3f}"
    )

    boundary_set = set(result.boundaries)
    table = Table(title="Consecutive similarity")
    table.add_column("Pair", justify="right")
    table.add_column("Similarity", justify="right")
    table.add_column("Boundary")
    for i, sim in enumerate(result.similarities):
        marker = "[red]<- topic shift[/red]" if (i + 1) in boundary_set else ""
        table.add_row(f"{i}/{i + 1}", f"{sim:.3f}", marker)
    console.print(table)
    console.print(f"Boundaries (input positions): {result.input_boundaries}")


# ========================================
# Video
# ========================================


@app.command("segment")
def segment_command(
    source: Path = typer.Argument(..., help="Transcript JSON: [{text, start, end|duration}]"),
    duration: float = typer.Option(None, "--duration", "-d", help="Total video seconds"),
    min_duration: float = typer.Option(None, "--min", help="Minimum segment seconds"),
    max_duration: float = typer.Option(None, "--max", help="Maximum segment seconds"),
    output_json: Path = typer.Option(None, "--output-json", "-o", help="Save segments to JSON"),
):
    """Cut a timed transcript into topic-aligned video segments."""
    from learnfeed.processing.video_segmentation import (
        TranscriptSegment,
        VideoSegmentationService,
    )

    data = _read_json(source)
    raw = data.get("segments", []) if isinstance(data, dict) else data
    units = [TranscriptSegment.from_dict(d) for d in raw if d]

    try:
        service = VideoSegmentationService(
            min_duration_sec=min_duration, max_duration_sec=max_duration
        )
        segments = service.segment_transcript(units, duration)
    except PipelineError as e:
        _fail(e)

    table = Table(title=f"Video segments ({len(segments)})")
    table.add_column("ID", style="cyan")
    table.add_column("Start", justify="right")
    table.add_column("End", justify="right")
    table.add_column("Duration", justify="right")
    table.add_column("Units", justify="right")
    for seg in segments:
        table.add_row(
            seg.id,
            f"{seg.start_sec:.0f}s",
            f"{seg.end_sec:.0f}s",
            f"{seg.duration_sec / 60:.1f}m",
            f"{seg.start_index}-{seg.end_index}",
        )
    console.print(table)

    if output_json:
        _write_json(output_json, {"segments": [s.to_dict() for s in segments]})


# ========================================
# Feed
# ========================================


@app.command("feed")
def feed_command(
    source: Path = typer.Argument(
        ..., help="JSON with 'concepts' (video), or 'chunks' and 'related_concepts' (text)"
    ),
    source_id: str = typer.Option("source", "--source-id", "-s", help="Source id for item ids"),
    kind: str = typer.Option("video", "--kind", "-k", help="video or text"),
    performance: float = typer.Option(
        None, "--performance", "-p", help="Learner performance 0-100 (adaptive synthesis)"
    ),
    pretests: Path = typer.Option(None, "--pretests", help="Prerequisite pretest JSON"),
    seed: int = typer.Option(None, "--seed", help="Random seed for reproducible feeds"),
    output_json: Path = typer.Option(None, "--output-json", "-o", help="Save feed to JSON"),
):
    """Assemble a learning feed and show its item sequence."""
    from learnfeed.feed.builder import FeedBuilderService
    from learnfeed.feed.models import Concept, PretestData
    from learnfeed.processing.text_chunking_pipeline import TextChunk

    if kind not in ("video", "text"):
        console.print(f"[red]Error: --kind must be 'video' or 'text', got {kind}[/red]")
        raise typer.Exit(1)

    data = _read_json(source)
    pretest_data = PretestData.from_dict(_read_json(pretests)) if pretests else None
    builder = FeedBuilderService(rng=random.Random(seed))

    try:
        if kind == "video":
            concepts = [Concept.from_dict(c) for c in data.get("concepts", [])]
            if pretest_data is not None:
                feed = builder.build_feed_with_pretests(
                    source_id, concepts, pretest_data, performance
                )
            elif performance is not None:
                feed = builder.build_feed_with_synthesis(source_id, concepts, performance)
            else:
                feed = builder.build_feed(source_id, concepts)
        else:
            chunks = [TextChunk.from_dict(c) for c in data.get("chunks", [])]
            related = [Concept.from_dict(c) for c in data.get("related_concepts", [])]
            feed = builder.assemble(
                source_id, chunks, related, performance=performance, pretest_data=pretest_data
            )
    except PipelineError as e:
        _fail(e)

    table = Table(title=f"Feed for {source_id} ({len(feed)} items)")
    table.add_column("#", justify="right", style="dim")
    table.add_column("ID", style="cyan")
    table.add_column("Type")
    table.add_column("Detail")
    for i, item in enumerate(feed):
        table.add_row(str(i), item.id, item.type.value, _describe(item))
    console.print(table)

    if output_json:
        _write_json(output_json, {"feed": [item.to_dict() for item in feed]})


def _describe(item) -> str:
    """One-line summary of a feed item for the table."""
    from learnfeed.feed import models

    if isinstance(item, models.VideoChunkItem):
        return f"{item.title} ({item.start_sec:.0f}-{item.end_sec:.0f}s)"
    if isinstance(item, models.TextChunkItem):
        return item.text[:60]
    if isinstance(item, models.QuizItem):
        return item.question.question_text[:60]
    if isinstance(item, models.FactItem):
        return item.fact_text[:60]
    if isinstance(item, models.SynthesisItem):
        return item.synthesis_prompt[:60]
    if isinstance(item, models.SynthesisPhaseItem):
        return f"{item.interaction_count} interactions @ {item.performance:.0f}%"
    if isinstance(item, models.PretestItem):
        return f"Q{item.question_number}/{item.total_questions}: {item.question_text[:50]}"
    if isinstance(item, models.PretestResultsItem):
        return f"{item.total_prerequisites} prerequisites ({item.recommendation})"
    return ""


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
