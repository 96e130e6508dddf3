from __future__ import annotations

import argparse
import random
import sys

from rich import box
from rich.console import Console
from rich.table import Table

from .core.analysis import draw_frequencies, expected_frequencies, max_abs_deviation
from .core.errors import InvalidConfiguration
from .core.table import ProbabilityTable


def _parse_weights(raw: str) -> list[float]:
    try:
        return [float(part) for part in raw.split(",") if part.strip()]
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"weights must be comma-separated numbers: {raw!r}") from exc


def _add_serve_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--host", default=None, help="Bind address (default: $BIND or 0.0.0.0)")
    p.add_argument("--port", type=int, default=None, help="Port (default: $PORT or 8000)")


def _add_simulate_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--weights", type=_parse_weights, required=True, help="Comma-separated card weights, e.g. 70,20,8,2")
    p.add_argument("--labels", type=str, default=None, help="Comma-separated labels (default: card numbers)")
    p.add_argument("--draws", type=int, default=100_000, help="Number of draws to simulate")
    p.add_argument("--seed", type=int, default=None, help="RNG seed (random if omitted)")
    p.add_argument("--no-color", action="store_true", help="Disable colored output")


def _serve(args: argparse.Namespace) -> None:
    import logging
    from dataclasses import replace

    import uvicorn

    from .core.settings import Settings
    from .web.app import create_app

    settings = Settings.from_env()
    if args.host:
        settings = replace(settings, host=args.host)
    if args.port:
        settings = replace(settings, port=args.port)
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(create_app(settings), host=settings.host, port=settings.port)


def _simulate(args: argparse.Namespace) -> int:
    console = Console(color_system=None) if args.no_color else Console()
    weights: list[float] = args.weights
    labels = [part.strip() for part in args.labels.split(",")] if args.labels else [f"card {i + 1}" for i in range(len(weights))]
    if len(labels) != len(weights):
        console.print(f"[red]{len(labels)} labels for {len(weights)} weights[/]")
        return 2
    try:
        table = ProbabilityTable.from_pairs(zip(labels, weights, strict=True))
    except InvalidConfiguration as exc:
        console.print(f"[red]{exc}[/]")
        return 2
    if args.draws <= 0:
        console.print("[red]--draws must be positive[/]")
        return 2

    rng = random.Random(args.seed)
    observed = draw_frequencies(table, args.draws, rng)
    expected = expected_frequencies(table)

    out = Table(title=f"{args.draws:,} draws", box=box.SIMPLE_HEAVY)
    out.add_column("Card")
    out.add_column("Weight", justify="right")
    out.add_column("Expected", justify="right")
    out.add_column("Observed", justify="right")
    for entry, exp, obs in zip(table.entries, expected, observed, strict=True):
        out.add_row(entry.label, f"{entry.weight:g}", f"{exp:.2%}", f"{obs:.2%}")
    console.print(out)
    console.print(f"max deviation: {max_abs_deviation(observed, expected):.3%}")
    return 0


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="angpau", description="Prize-card session engine")
    sub = parser.add_subparsers(dest="command", required=True)
    _add_serve_args(sub.add_parser("serve", help="Run the HTTP/WebSocket server"))
    _add_simulate_args(sub.add_parser("simulate", help="Check a table's draw distribution"))
    args = parser.parse_args(argv)

    if args.command == "serve":
        _serve(args)
        return
    code = _simulate(args)
    if code:
        sys.exit(code)


if __name__ == "__main__":
    main()
