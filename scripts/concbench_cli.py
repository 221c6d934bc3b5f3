from __future__ import annotations

import argparse
import sys
from pathlib import Path


# Ensure project root is on sys.path so 'concbench' resolves when running this script directly
def project_root() -> Path:
    return Path(__file__).resolve().parents[1]

_ROOT = project_root()
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from concbench.harness.config import ConfigError, load_config
from concbench.harness.reporting import (
    export_sqlite,
    format_group_table,
    generate_results_markdown_from_db,
    write_json,
    write_markdown,
)
from concbench.harness.runner import BenchmarkRunner, Measurement
from concbench.harness.workloads import Workload
from concbench.strategies import UnknownStrategy, get_registry


def _int_list(raw: str) -> list[int]:
    try:
        return [int(x) for x in raw.split(",") if x.strip()]
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected comma-separated integers, got {raw!r}")


def _str_list(raw: str) -> list[str]:
    return [x.strip() for x in raw.split(",") if x.strip()]


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Concurrency strategy micro-benchmarks")
    sub = ap.add_subparsers(dest="cmd", required=True)

    p_run = sub.add_parser("run", help="Run workloads x iterations x strategies and print timings")
    p_run.add_argument("--config", type=Path, default=None, help="JSON file with BenchmarkConfig fields")
    p_run.add_argument("--iterations", type=_int_list, default=None, help="e.g. 1,2,4,8 (N runs N+1 invocations)")
    p_run.add_argument("--replicates", type=int, default=None, help="timed repetitions per combination")
    p_run.add_argument("--workloads", type=_str_list, default=None, help="e.g. empty,fibonacci")
    p_run.add_argument("--strategies", type=_str_list, default=None, help="e.g. sequential,threads (default: all available)")
    p_run.add_argument("--no-rehearsal", action="store_true", help="skip the untimed rehearsal pass")
    p_run.add_argument("--md-out", type=Path, default=None, help="write a Markdown report")
    p_run.add_argument("--json-out", type=Path, default=None, help="write raw measurements as JSON")
    p_run.add_argument("--db-out", type=Path, default=None, help="append the session to a SQLite DB")

    sub.add_parser("strategies", help="List available and skipped strategies")

    p_rep = sub.add_parser("report", help="Render Markdown for the latest sessions in a SQLite DB")
    p_rep.add_argument(
        "--db",
        type=Path,
        default=project_root() / "user_data" / "results" / "concbench.sqlite",
    )
    p_rep.add_argument("--out", type=Path, default=None, help="output path (default: stdout)")
    p_rep.add_argument("--limit", type=int, default=10)
    return ap


def cmd_strategies() -> int:
    registry = get_registry()
    print("Available strategies:")
    for name, strategy in registry.list_available_strategies():
        print(f"  {name:<12} {strategy.description}")
    skipped = registry.skipped()
    if skipped:
        print("Skipped (capability unavailable):")
        for name, reason in skipped.items():
            print(f"  {name:<12} {reason}")
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    overrides = {
        "iterations": args.iterations,
        "replicates": args.replicates,
        "workloads": args.workloads,
        "strategies": args.strategies,
        "rehearsal": False if args.no_rehearsal else None,
    }
    try:
        config = load_config(args.config, overrides)
    except ConfigError as e:
        print(f"[concbench] invalid configuration: {e}", file=sys.stderr)
        return 2

    registry = get_registry()
    for name in registry.skipped():
        print(f"{name} not available", file=sys.stderr)

    runner = BenchmarkRunner(config, registry=registry)
    try:
        runner.strategies()
    except UnknownStrategy as e:
        print(f"[concbench] {e}", file=sys.stderr)
        return 2

    def _print_group(workload: Workload, iterations: int, group: list[Measurement]) -> None:
        print(f"\nRunning {workload.label} with {iterations} iterations ...\n")
        print(format_group_table(group), end="")

    print("Commencing tests ...")
    session = runner.run(on_group=_print_group)

    if args.md_out:
        write_markdown(session, args.md_out)
        print(f"Wrote {args.md_out}")
    if args.json_out:
        write_json(session, args.json_out)
        print(f"Wrote {args.json_out}")
    if args.db_out:
        n = export_sqlite(session, args.db_out)
        print(f"Stored {n} measurements in {args.db_out}")

    return 1 if session.failed else 0


def cmd_report(args: argparse.Namespace) -> int:
    if not args.db.exists():
        print(f"[concbench] DB not found: {args.db}", file=sys.stderr)
        return 2
    md = generate_results_markdown_from_db(args.db, limit=args.limit)
    if args.out is None:
        print(md, end="")
        return 0
    args.out.parent.mkdir(parents=True, exist_ok=True)
    args.out.write_text(md, encoding="utf-8")
    print(f"Wrote report -> {args.out}")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.cmd == "strategies":
        return cmd_strategies()
    if args.cmd == "run":
        return cmd_run(args)
    if args.cmd == "report":
        return cmd_report(args)
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
