"""CLI entrypoint."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from quick_chain.input_adaptors import InputAdaptor, TextInput
from quick_chain.models.chain_run import ChainOutcome
from quick_chain.orchestrator import Orchestrator


async def run_chain(
    orch: Orchestrator,
    chain_id: str,
    input_adaptor: InputAdaptor | Path,
    deadline: float | None,
) -> ChainOutcome:
    return await orch.run(chain_id, input_adaptor, deadline=deadline)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="quick-chain")
    parser.add_argument("--chains-dir", type=str, default="chains")
    parser.add_argument("--chain", type=str, required=True)
    input_group = parser.add_mutually_exclusive_group(required=True)
    input_group.add_argument("--input", type=str, help="Path to an input file")
    input_group.add_argument("--input-text", type=str, help="Raw input text")
    parser.add_argument("--deadline", type=float, default=None, help="Whole-chain deadline in seconds")
    parser.add_argument("--log-level", type=str, default="WARNING")
    return parser


def main() -> int:
    args = build_parser().parse_args()
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    package_root = Path(__file__).resolve().parent
    chain_roots = [Path(args.chains_dir), package_root / "chains"]

    orch = Orchestrator(chain_roots)
    input_adaptor: InputAdaptor | Path
    if args.input_text is not None:
        input_adaptor = TextInput(args.input_text)
    else:
        input_adaptor = Path(args.input)

    # Async entrypoint
    import anyio

    outcome = anyio.run(run_chain, orch, args.chain, input_adaptor, args.deadline)
    print(outcome.model_dump_json(indent=2, exclude={"run": {"results": {"__all__": {"rendered_input"}}}}))
    return 0 if outcome.status.value in ("success", "partial") else 1
