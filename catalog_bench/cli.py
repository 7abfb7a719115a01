"""Command-line entry point for the weighted catalog benchmark."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
from contextlib import suppress
from typing import Optional, Sequence

from pydantic import ValidationError

from catalog_bench.config import settings
from catalog_bench.connectors import RestCatalogClient
from catalog_bench.core import (
    BenchmarkConfigurationError,
    ContextCancelled,
    RunContext,
    WeightedBenchmark,
    run_benchmark,
)
from catalog_bench.models import (
    AutoTermConfig,
    TreeConfig,
    WeightedBenchmarkConfig,
    WeightedDistribution,
)

logger = logging.getLogger(__name__)

EPILOG = """\
examples:
  1. Run weighted workload with the default 80/20 style distribution:
     %(prog)s --catalog-uri http://localhost:9001/_iceberg \
       --iceberg-access-key KEY --iceberg-secret-key SECRET

  2. Run with more readers focused on different tables than writers:
     %(prog)s --readers 10 --reader-mean 0.2 --writers 2 --writer-mean 0.8

  3. High contention workload (readers and writers on same tables):
     %(prog)s --reader-mean 0.5 --writer-mean 0.5 --reader-variance 0.01 --writer-variance 0.01
"""


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="catalog-bench-weighted",
        description="Benchmark an Iceberg REST catalog with weighted/skewed access patterns",
        epilog=EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    conn = parser.add_argument_group("catalog")
    conn.add_argument(
        "--catalog-uri",
        default=settings.ICEBERG_CATALOG_URI,
        help="Iceberg REST catalog base URL (e.g., http://localhost:9001/_iceberg)",
    )
    conn.add_argument(
        "--api-prefix",
        default=settings.ICEBERG_API_PREFIX,
        help="API prefix for Iceberg REST catalog",
    )
    conn.add_argument(
        "--iceberg-access-key",
        default=settings.ICEBERG_ACCESS_KEY,
        help="Access key for SIGV4 authentication",
    )
    conn.add_argument(
        "--iceberg-secret-key",
        default=settings.ICEBERG_SECRET_KEY,
        help="Secret key for SIGV4 authentication",
    )
    conn.add_argument(
        "--iceberg-region", default=settings.ICEBERG_REGION, help="Region for SIGV4 signing"
    )
    conn.add_argument(
        "--iceberg-service",
        default=settings.ICEBERG_SERVICE,
        help="Service name for SIGV4 signing",
    )
    conn.add_argument(
        "--token",
        default=settings.ICEBERG_TOKEN,
        help="Bearer token, for catalogs that do not use SIGV4",
    )
    conn.add_argument(
        "--catalog-name", default=settings.CATALOG_NAME, help="Catalog name to use"
    )
    conn.add_argument(
        "--request-timeout",
        type=float,
        default=settings.ICEBERG_REQUEST_TIMEOUT,
        help="Per-request timeout in seconds",
    )

    tree = parser.add_argument_group("dataset")
    tree.add_argument(
        "--namespace-width",
        type=int,
        default=settings.NAMESPACE_WIDTH,
        help="Width of the N-ary namespace tree (children per namespace)",
    )
    tree.add_argument(
        "--namespace-depth",
        type=int,
        default=settings.NAMESPACE_DEPTH,
        help="Depth of the N-ary namespace tree",
    )
    tree.add_argument(
        "--tables-per-ns",
        type=int,
        default=settings.TABLES_PER_NS,
        help="Number of tables per leaf namespace",
    )

    load = parser.add_argument_group("workload")
    load.add_argument(
        "--seed", type=int, default=settings.DEFAULT_SEED, help="Random seed for reproducibility"
    )
    load.add_argument("--readers", type=int, default=8, help="Number of reader workers")
    load.add_argument(
        "--reader-mean",
        type=float,
        default=0.3,
        help="Mean position (0.0-1.0) for reader distribution",
    )
    load.add_argument(
        "--reader-variance", type=float, default=0.0278, help="Variance for reader distribution"
    )
    load.add_argument("--writers", type=int, default=2, help="Number of writer workers")
    load.add_argument(
        "--writer-mean",
        type=float,
        default=0.7,
        help="Mean position (0.0-1.0) for writer distribution",
    )
    load.add_argument(
        "--writer-variance", type=float, default=0.0278, help="Variance for writer distribution"
    )

    run = parser.add_argument_group("run")
    run.add_argument(
        "--duration",
        type=float,
        default=settings.DEFAULT_DURATION_SECONDS,
        help="Duration of the benchmark in seconds (0 = until interrupted)",
    )
    run.add_argument(
        "--autoterm-duration",
        type=float,
        default=0.0,
        help="Enable auto-termination; hard upper bound in seconds (0 = disabled)",
    )
    run.add_argument(
        "--autoterm-pct",
        type=float,
        default=settings.AUTOTERM_THRESHOLD_PCT,
        help="Throughput must stay within this percentage to auto-terminate",
    )
    run.add_argument(
        "--rps-limit",
        type=float,
        default=0.0,
        help="Limit requests per second across all workers (0 = unlimited)",
    )
    run.add_argument(
        "--max-ops",
        type=int,
        default=0,
        help="Stop after this many requests (0 = unlimited)",
    )
    run.add_argument(
        "--buffer-size",
        type=int,
        default=settings.COLLECTOR_BUFFER_SIZE,
        help="Operation channel capacity between workers and the aggregator",
    )
    run.add_argument("--log-level", default=settings.LOG_LEVEL, help="Logging level")
    return parser


def check_args(parser: argparse.ArgumentParser, args: argparse.Namespace) -> None:
    """Reject invalid flag combinations (exits with status 2)."""
    if not str(args.catalog_uri or "").strip():
        parser.error("--catalog-uri is required")
    if not args.token:
        if not args.iceberg_access_key:
            parser.error("--iceberg-access-key is required")
        if not args.iceberg_secret_key:
            parser.error("--iceberg-secret-key is required")
    elif bool(args.iceberg_access_key) != bool(args.iceberg_secret_key):
        parser.error("--iceberg-access-key and --iceberg-secret-key must be given together")
    if args.readers < 0:
        parser.error("--readers must be >= 0")
    if args.writers < 0:
        parser.error("--writers must be >= 0")
    if args.readers == 0 and args.writers == 0:
        parser.error("at least one reader or writer is required")
    if not 0.0 <= args.reader_mean <= 1.0:
        parser.error("--reader-mean must be between 0.0 and 1.0")
    if not 0.0 <= args.writer_mean <= 1.0:
        parser.error("--writer-mean must be between 0.0 and 1.0")
    if args.reader_variance < 0 or args.writer_variance < 0:
        parser.error("--reader-variance and --writer-variance must be >= 0")
    if args.namespace_width < 1:
        parser.error("--namespace-width must be at least 1")
    if args.namespace_depth < 1:
        parser.error("--namespace-depth must be at least 1")
    if args.tables_per_ns < 1:
        parser.error("--tables-per-ns must be at least 1")
    if args.duration < 0 or args.autoterm_duration < 0:
        parser.error("--duration and --autoterm-duration must be >= 0")


def build_config(args: argparse.Namespace) -> WeightedBenchmarkConfig:
    return WeightedBenchmarkConfig(
        catalog_name=args.catalog_name,
        readers=[
            WeightedDistribution(
                count=args.readers, mean=args.reader_mean, variance=args.reader_variance
            )
        ],
        writers=[
            WeightedDistribution(
                count=args.writers, mean=args.writer_mean, variance=args.writer_variance
            )
        ],
        seed=args.seed,
        tree=TreeConfig(
            namespace_width=args.namespace_width,
            namespace_depth=args.namespace_depth,
            tables_per_ns=args.tables_per_ns,
        ),
        duration_seconds=args.duration,
        autoterm=AutoTermConfig(
            duration_seconds=args.autoterm_duration,
            threshold_pct=args.autoterm_pct,
        ),
        rps_limit=args.rps_limit,
        max_operations=args.max_ops,
        collector_buffer_size=args.buffer_size,
    )


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=settings.LOG_FORMAT,
    )
    # Per-request lines from httpx would drown the status output.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


async def _run(args: argparse.Namespace, config: WeightedBenchmarkConfig) -> int:
    ctx = RunContext()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, ctx.cancel, "interrupted")

    async with RestCatalogClient(
        base_url=args.catalog_uri,
        api_prefix=args.api_prefix,
        token=args.token,
        access_key=args.iceberg_access_key,
        secret_key=args.iceberg_secret_key,
        region=args.iceberg_region,
        service=args.iceberg_service,
        timeout_seconds=args.request_timeout,
        max_connections=max(1, config.total_workers),
    ) as client:
        bench = WeightedBenchmark(config, client)
        try:
            summary = await run_benchmark(bench, ctx=ctx)
        except BenchmarkConfigurationError as e:
            logger.error("Benchmark preparation failed: %s", e)
            return 1
        except ContextCancelled as e:
            logger.warning("Benchmark interrupted: %s", e.reason or "cancelled")
            return 130

    print(json.dumps(summary.model_dump(mode="json"), indent=2))
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    check_args(parser, args)
    configure_logging(args.log_level)

    try:
        config = build_config(args)
    except ValidationError as e:
        parser.error(str(e))

    try:
        return asyncio.run(_run(args, config))
    except KeyboardInterrupt:
        print("[catalog-bench] interrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
