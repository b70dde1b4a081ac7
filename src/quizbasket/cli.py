import logging
import random
from collections import Counter
from pathlib import Path
from typing import Annotated

import srsly
import typer
from pydantic import ValidationError

from quizbasket.allocation import (
    AllocationEntry,
    allocate_to_total,
    analyze_allocation_ranges,
    analyze_group,
)
from quizbasket.core.config import Configuration
from quizbasket.core.events import LoggingSink
from quizbasket.core.results import GenerationResult
from quizbasket.generate import generate_selection, quota_report
from quizbasket.sources import (
    BatchSource,
    LoadedPool,
    SourceFile,
    compute_overlap_counts,
    expand_batch_source,
    load_sources,
)

app = typer.Typer(help="Quota-driven song selection for quiz lobbies.")


@app.callback()
def main(
    log_level: Annotated[
        str,
        typer.Option("--log-level", help="DEBUG, INFO, WARNING or ERROR"),
    ] = "WARNING",
) -> None:
    logging.basicConfig(
        level=log_level.upper(),
        format="%(levelname)s %(name)s: %(message)s",
    )


def _parse_source(value: str) -> SourceFile:
    """Parse 'ID=PATH' or 'ID@PERCENT=PATH'.

    Raises typer.BadParameter on invalid input.
    """
    head, sep, path = value.partition("=")
    source_id, has_pct, pct = head.partition("@")
    if not sep or not source_id.strip() or not path.strip():
        raise typer.BadParameter(
            f"Invalid source '{value}': expected 'ID=PATH' or 'ID@PERCENT=PATH'"
        )
    percentage = None
    if has_pct:
        try:
            percentage = float(pct)
        except ValueError as err:
            raise typer.BadParameter(
                f"Invalid source '{value}': percentage must be a number"
            ) from err
    return SourceFile(
        source_id=source_id.strip(), path=path.strip(), percentage=percentage
    )


def _read_batch(path: Path) -> list[SourceFile]:
    try:
        batch = BatchSource.model_validate(srsly.read_json(path))
    except ValueError as err:
        raise typer.BadParameter(f"Invalid batch file '{path}': {err}") from err
    return expand_batch_source(batch)


def _parse_entry(value: str) -> AllocationEntry:
    """Parse 'LABEL=VALUE' or 'LABEL=MIN-MAX'."""
    label, sep, spec = value.partition("=")
    if not sep or not label.strip():
        raise typer.BadParameter(
            f"Invalid entry '{value}': expected 'LABEL=VALUE' or "
            "'LABEL=MIN-MAX'"
        )
    try:
        if "-" in spec:
            lo_s, hi_s = spec.split("-", 1)
            return AllocationEntry.range(
                label.strip(), float(lo_s), float(hi_s)
            )
        return AllocationEntry.static(label.strip(), float(spec))
    except ValueError as err:
        raise typer.BadParameter(f"Invalid entry '{value}': {err}") from err


def _load(sources: list[str], batches: list[Path] | None = None) -> LoadedPool:
    files = [_parse_source(s) for s in sources]
    for batch in batches or []:
        files.extend(_read_batch(batch))
    pool = load_sources(files)
    for error in pool.loading_errors:
        typer.echo(
            f"Warning: could not load {error.source_id} ({error.path}): "
            f"{error.message}",
            err=True,
        )
    return pool


def _echo_status(result: GenerationResult) -> None:
    typer.echo(
        f"Selected {result.final_count}/{result.target_count} items "
        f"(seed {result.seed_used}, {result.attempts} attempts)",
        err=True,
    )
    for basket_id, lo, hi, current, flag in quota_report(result):
        typer.echo(
            f"  {basket_id:<40} {current:>4}  [{lo}, {hi}]  {flag}", err=True
        )
    for warning in result.warnings:
        typer.echo(f"Warning: {warning}", err=True)


@app.command()
def generate(
    config_path: Annotated[
        Path, typer.Option("--config", "-c", help="Configuration JSON file")
    ],
    source: Annotated[
        list[str] | None,
        typer.Option(
            "--source", "-s", help="Pool JSONL as ID=PATH or ID@PERCENT=PATH"
        ),
    ] = None,
    batch: Annotated[
        list[Path] | None,
        typer.Option("--batch", help="Batch source JSON (several user lists)"),
    ] = None,
    output: Annotated[
        Path | None,
        typer.Option("--output", "-o", help="Output JSONL (default stdout)"),
    ] = None,
    report: Annotated[
        Path | None,
        typer.Option("--report", help="Write result metadata as JSON"),
    ] = None,
    seed: Annotated[
        str | None,
        typer.Option("--seed", help="Override the configured seed"),
    ] = None,
    strict_success: Annotated[
        bool,
        typer.Option(
            "--strict-success", help="Exit 1 when a basket minimum is unmet"
        ),
    ] = False,
) -> None:
    """Generate a selection from one or more source pools."""
    try:
        config = Configuration.model_validate(srsly.read_json(config_path))
    except ValidationError as err:
        typer.echo(f"Error: invalid configuration: {err}", err=True)
        raise typer.Exit(1) from err
    except ValueError as err:
        typer.echo(f"Error: {err}", err=True)
        raise typer.Exit(1) from err
    if seed is not None:
        config = config.model_copy(update={"seed": seed})

    if not source and not batch:
        raise typer.BadParameter("Provide at least one --source or --batch")
    pool = _load(source or [], batch)
    if pool.shares and not config.sources:
        config = config.model_copy(update={"sources": pool.shares})
    result = generate_selection(
        pool.items,
        config,
        sink=LoggingSink(),
        loading_errors=pool.loading_errors,
    )

    rows = [
        item.model_dump(mode="json", by_alias=True)
        for item in result.selected_items
    ]
    try:
        if output is None:
            for row in rows:
                typer.echo(srsly.json_dumps(row))
        else:
            srsly.write_jsonl(output, rows)
        if report is not None:
            srsly.write_json(
                report,
                result.model_dump(
                    mode="json", by_alias=True, exclude={"selected_items"}
                ),
            )
    except OSError as err:
        typer.echo(f"Error: could not write output: {err}", err=True)
        raise typer.Exit(1) from err

    _echo_status(result)
    if strict_success and not result.success:
        typer.echo("Error: some basket minimums were not met", err=True)
        raise typer.Exit(1)


@app.command()
def allocate(
    target: Annotated[int, typer.Option("--target", "-t", help="Group total")],
    entry: Annotated[
        list[str],
        typer.Option("--entry", "-e", help="LABEL=VALUE or LABEL=MIN-MAX"),
    ],
    seed: Annotated[
        int, typer.Option("--seed", help="Seed for the concrete allocation")
    ] = 0,
    simulations: Annotated[
        int | None,
        typer.Option("--simulations", help="Also report simulated ranges"),
    ] = None,
) -> None:
    """Analyze a quota group and draw one allocation."""
    entries = [_parse_entry(e) for e in entry]
    analysis = analyze_group(entries, target)
    kind = "random" if analysis.has_random else "deterministic"
    typer.echo(f"Group of {len(entries)} entries over {target}: {kind}")
    if not analysis.feasible:
        typer.echo("Warning: entries cannot sum to the target", err=True)
    for label, resolved in analysis.refined.items():
        lo, hi = resolved.bounds
        typer.echo(f"  {label}: [{lo}, {hi}]")

    allocation = allocate_to_total(entries, target, random.Random(seed))
    typer.echo("Allocation:")
    for label, count in allocation.items():
        typer.echo(f"  {label}: {count}")

    if simulations is not None:
        if simulations < 1:
            typer.echo("Error: --simulations must be >= 1", err=True)
            raise typer.Exit(1)
        observed = analyze_allocation_ranges(
            entries, target, seed=str(seed), simulations=simulations
        )
        typer.echo(f"Observed over {simulations} simulations:")
        for label, (lo, hi) in observed.items():
            typer.echo(f"  {label}: {lo}-{hi}")


@app.command()
def info(
    source: Annotated[
        list[str],
        typer.Option("--source", "-s", help="Pool JSONL as ID=PATH"),
    ],
) -> None:
    """Show per-source item counts and overlap tiers."""
    pool = _load(source)
    typer.echo(f"{len(pool.items)} items from {len(source)} source(s)")
    for source_id, count in sorted(pool.by_source().items()):
        typer.echo(f"  {source_id}: {count}")

    tiers = Counter(compute_overlap_counts(pool.items).values())
    typer.echo("Overlap tiers:")
    for overlap, count in sorted(tiers.items()):
        typer.echo(f"  in {overlap} source(s): {count}")
    if pool.loading_errors:
        typer.echo(f"{len(pool.loading_errors)} source(s) failed to load")
