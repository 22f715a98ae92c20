"""Bytescope CLI: fingerprint and compare deployed EVM contracts.

Usage:
    bytescope analyze <address>...    Analyse one or more deployed contracts
    bytescope tx <hash>               Analyse every contract touched by a transaction
    bytescope file <path>...          Analyse runtime bytecode stored in local hex files
    bytescope config                  Show current configuration

Examples:
    bytescope analyze 0xA0b8...eB48 --network mainnet
    bytescope analyze 0x1111... 0x2222... --name Proxy --name Logic -f json -o out.json
    bytescope tx 0xabc...def -f markdown
    bytescope file build/Token.bin build/TokenV2.bin -f csv
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from bytescope import __version__
from bytescope.analyzer.contract_analyzer import ContractAnalyzer
from bytescope.analyzer.similarity import compare_contracts
from bytescope.core.config import get_settings
from bytescope.core.errors import AggregateFailure, BytescopeError
from bytescope.core.logging import setup_logging
from bytescope.core.networks import NETWORKS
from bytescope.core.types import BytecodeAnalysis, ContractComparison, ContractInput
from bytescope.ingestion.rpc_client import JsonRpcClient
from bytescope.pipeline.service import AnalysisService
from bytescope.reports.exporter import AnalysisType, BytecodeExporter, format_bytes


# ── Coloured output helpers ──────────────────────────────────────────────────

_RESET = "\033[0m"
_BOLD = "\033[1m"
_RED = "\033[91m"
_YELLOW = "\033[93m"
_GREEN = "\033[92m"
_CYAN = "\033[96m"
_DIM = "\033[2m"

_LEVEL_COLOR = {
    "Low": _GREEN,
    "Medium": _YELLOW,
    "High": _RED,
}


def _c(text: str, code: str) -> str:
    return f"{code}{text}{_RESET}"


BANNER = f"""
{_BOLD}{_CYAN}bytescope{_RESET} {_DIM}v{__version__} · EVM bytecode fingerprinting{_RESET}
"""


# ── CLI argument parser ─────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bytescope",
        description="Bytescope: function-selector fingerprinting for deployed EVM contracts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="store_true", help="Print version and exit")
    parser.add_argument("--no-banner", action="store_true", help="Suppress the startup banner")
    parser.add_argument("--quiet", "-q", action="store_true", help="Minimal output")

    output = argparse.ArgumentParser(add_help=False)
    output.add_argument(
        "--format",
        "-f",
        default="table",
        choices=["table", "json", "csv", "markdown"],
        help="Output format (default: table)",
    )
    output.add_argument("--output", "-o", help="Write output to file instead of stdout")

    node = argparse.ArgumentParser(add_help=False)
    node.add_argument(
        "--network",
        choices=sorted(NETWORKS),
        help="Network to query (default: from settings)",
    )
    node.add_argument("--rpc-url", help="JSON-RPC endpoint, overrides --network")
    node.add_argument("--block-tag", default="latest", help="Block number or tag (default: latest)")

    sub = parser.add_subparsers(dest="command")

    # ── analyze ──────────────────────────────────────────────────────────────
    analyze_p = sub.add_parser(
        "analyze", parents=[node, output], help="Analyse deployed contracts by address"
    )
    analyze_p.add_argument("addresses", nargs="+", metavar="ADDRESS")
    analyze_p.add_argument(
        "--name",
        action="append",
        default=[],
        help="Display name, matched to addresses by position (repeatable)",
    )

    # ── tx ───────────────────────────────────────────────────────────────────
    tx_p = sub.add_parser(
        "tx", parents=[node, output], help="Analyse contracts touched by a transaction"
    )
    tx_p.add_argument("tx_hash", metavar="HASH")

    # ── file ─────────────────────────────────────────────────────────────────
    file_p = sub.add_parser(
        "file", parents=[output], help="Analyse runtime bytecode from local hex files"
    )
    file_p.add_argument("paths", nargs="+", metavar="PATH")

    # ── config ───────────────────────────────────────────────────────────────
    sub.add_parser("config", help="Show current configuration")

    return parser


# ── Rendering ────────────────────────────────────────────────────────────────


def _print_table(comparison: ContractComparison, quiet: bool = False) -> None:
    """Pretty-print analyses and pairwise similarities."""
    for analysis in comparison.contracts:
        level = analysis.complexity.level.value
        print(f"\n{_BOLD}{analysis.contract_name}{_RESET}  {_c(analysis.address, _DIM)}")
        print(
            f"  Size: {format_bytes(analysis.size)}"
            f"  |  Functions: {len(analysis.functions)}"
            f"  |  Complexity: {_c(level, _LEVEL_COLOR.get(level, ''))}"
            f" ({analysis.complexity.score}/100)"
        )
        print(f"  Standards: {', '.join(analysis.standards) or _c('none', _DIM)}")
        if analysis.proxy.is_proxy:
            print(f"  Proxy: {_c(analysis.proxy.type or 'Unknown Proxy', _YELLOW)}")
        if analysis.security.features:
            print(f"  Security: {', '.join(analysis.security.features)}")
        if analysis.patterns:
            print(f"  Patterns: {', '.join(analysis.patterns)}")

        if not quiet:
            for func in analysis.functions:
                print(f"    {_DIM}{func.signature}{_RESET}  {func.name}  {_c(func.category.value, _CYAN)}")

    if comparison.similarities:
        print(f"\n{_BOLD}Similarities{_RESET}")
        for sim in comparison.similarities:
            color = _GREEN if sim.similarity > 80 else _DIM
            print(
                f"  {sim.contract_a} ↔ {sim.contract_b}  "
                f"{_c(f'{sim.similarity:g}%', color)}"
                f"  ({sim.shared_functions}/{sim.total_functions} shared)"
            )

    if comparison.relationships:
        print(f"\n{_BOLD}Relationships{_RESET}")
        for rel in comparison.relationships:
            print(f"  {_c(rel.type.value, _CYAN)}  {rel.description}  {_DIM}({rel.confidence:.0%}){_RESET}")
    print()


def _emit(
    comparison: ContractComparison,
    args: argparse.Namespace,
    analysis_type: AnalysisType,
    network: str,
) -> int:
    """Write a comparison in the requested format to stdout or --output."""
    settings = get_settings()
    fmt = args.format
    exporter = BytecodeExporter(version=settings.export_version)
    metadata = {"network": network, "analysis_type": analysis_type}

    if fmt == "table":
        _print_table(comparison, quiet=args.quiet)
        return 0
    if fmt == "markdown":
        output = exporter.summary_report(comparison)
    elif analysis_type == AnalysisType.SINGLE and len(comparison.contracts) == 1:
        output = exporter.export_analysis(comparison.contracts[0], fmt, metadata).content
    else:
        output = exporter.export_comparison(comparison, fmt, metadata).content

    if args.output:
        Path(args.output).write_text(output)
        if not args.quiet:
            print(f"  Written to {_c(args.output, _CYAN)}", file=sys.stderr)
    else:
        print(output)
    return 0


def _report_failure(exc: BytescopeError) -> int:
    print(_c(f"\nAnalysis failed: {exc}", _RED), file=sys.stderr)
    if isinstance(exc, AggregateFailure):
        for failure in exc.failures:
            print(f"  {_DIM}{failure.contract.address}: {failure.error}{_RESET}", file=sys.stderr)
    return 1


# ── Commands ─────────────────────────────────────────────────────────────────


def _make_client(args: argparse.Namespace) -> JsonRpcClient:
    settings = get_settings()
    if args.rpc_url:
        return JsonRpcClient(
            args.rpc_url,
            timeout=settings.rpc_timeout_seconds,
            max_retries=settings.rpc_max_retries,
            retry_base_delay=settings.rpc_retry_base_delay,
        )
    return JsonRpcClient.from_settings(settings, args.network)


def _block_tag(value: str) -> str | int:
    return int(value) if value.isdigit() else value


async def _run_analyze(args: argparse.Namespace) -> int:
    names = list(args.name) + [None] * (len(args.addresses) - len(args.name))
    contracts = [ContractInput(address=a, name=n) for a, n in zip(args.addresses, names)]
    network = args.network or get_settings().network

    if not args.quiet:
        print(f"  Analysing {_c(str(len(contracts)), _CYAN)} contract(s) on {network}…", file=sys.stderr)

    try:
        async with _make_client(args) as rpc:
            service = AnalysisService(rpc)
            comparison = await service.analyze_multiple_contracts(
                contracts, _block_tag(args.block_tag)
            )
    except BytescopeError as exc:
        return _report_failure(exc)

    analysis_type = AnalysisType.SINGLE if len(contracts) == 1 else AnalysisType.MULTIPLE
    return _emit(comparison, args, analysis_type, network)


async def _run_tx(args: argparse.Namespace) -> int:
    network = args.network or get_settings().network
    if not args.quiet:
        print(f"  Inspecting transaction {_c(args.tx_hash, _CYAN)} on {network}…", file=sys.stderr)

    try:
        async with _make_client(args) as rpc:
            service = AnalysisService(rpc)
            comparison = await service.analyze_from_transaction(
                args.tx_hash, _block_tag(args.block_tag)
            )
    except BytescopeError as exc:
        return _report_failure(exc)

    return _emit(comparison, args, AnalysisType.TRANSACTION, network)


def _run_file(args: argparse.Namespace) -> int:
    """Analyse hex-encoded runtime bytecode read from disk."""
    settings = get_settings()
    analyzer = ContractAnalyzer(min_bytecode_size=settings.min_bytecode_size)
    analyses: list[BytecodeAnalysis] = []

    for raw in args.paths:
        path = Path(raw)
        if not path.is_file():
            print(_c(f"Error: file '{path}' does not exist.", _RED), file=sys.stderr)
            return 1
        try:
            analyses.append(analyzer.analyze(path.read_text().strip(), str(path), path.stem))
        except BytescopeError as exc:
            print(_c(f"Error: {path}: {exc}", _RED), file=sys.stderr)
            return 1

    analysis_type = AnalysisType.SINGLE if len(analyses) == 1 else AnalysisType.MULTIPLE
    return _emit(compare_contracts(analyses), args, analysis_type, "offline")


def _run_config() -> int:
    """Print current settings (redacted)."""
    s = get_settings()
    print(f"\n{_BOLD}Bytescope Configuration{_RESET}\n")
    for field_name in sorted(type(s).model_fields.keys()):
        val = getattr(s, field_name, "")
        if any(kw in field_name for kw in ("secret", "key", "token")):
            val = "****" if val else "(not set)"
        print(f"  {_DIM}{field_name}:{_RESET}  {val}")
    print()
    return 0


# ── Entrypoint ───────────────────────────────────────────────────────────────


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"bytescope {__version__}")
        return 0

    if not args.no_banner and not args.quiet:
        print(BANNER, file=sys.stderr)

    settings = get_settings()
    setup_logging(env=settings.app_env, log_level="WARNING" if args.quiet else settings.log_level)

    if args.command == "config":
        return _run_config()

    if args.command == "analyze":
        return asyncio.run(_run_analyze(args))

    if args.command == "tx":
        return asyncio.run(_run_tx(args))

    if args.command == "file":
        return _run_file(args)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
