#!/usr/bin/env python3
"""
zkgate - Private Credential Proofs on Starknet
==============================================

[PROOF] Generate a zero-knowledge proof that a signed credential satisfies a
predicate (age >= threshold, membership in a set) without revealing the
attribute, then register it with the on-chain verification registry.

[CHAIN] The registry deduplicates proofs by nullifier. Reuse is checked
before submission and the wallet network is checked against the configured
chain.

Usage:
    python main.py validate credential.json --type age
    python main.py inputs credential.json --type membership --allowed 0x64,0x65 --context 42
    python main.py prove credential.json --type age --threshold 18 --context 42
    python main.py prove credential.json --type age --threshold 18 --context 42 \\
        --submit --wallet-rpc http://127.0.0.1:5050 --account 0x123...
    python main.py status 0x2a...
    python main.py history --enrich
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Any, List, Optional

# Environment from .env, if present
try:
    from dotenv import load_dotenv
    load_dotenv()
except ImportError:
    pass  # python-dotenv not installed

from config import config, get_current_network
from core.errors import ZkGateError, describe_error
from core.logger import setup_logging
from core.types import AgeParameters, Credential, MembershipParameters, PredicateType, ProofParameters
from prover.calldata import AssetLoader, CalldataBuilder
from prover.credentials import CredentialValidator, load_credential
from prover.orchestrator import ProofOrchestrator, ProofStep
from prover.runtime import BarretenbergBackend, GaragaCalldataEncoder, NargoRuntime
from prover.witness import WitnessMapper
from chain.history import (
    CancellationToken,
    HistoryEnricher,
    HistoryStore,
    entry_from_submission,
    load_and_enrich,
)
from chain.nullifier import NullifierGuard
from chain.reader import ChainReader, registry_client_factory
from chain.rpc import StarknetRpcClient
from chain.submitter import ProofSubmitter, explorer_tx_url
from chain.wallet import JsonRpcWallet, WalletNetworkGuard

logger = logging.getLogger(__name__)


# ============================================================================
# Wiring
# ============================================================================

def build_reader() -> ChainReader:
    return ChainReader(
        registry_client_factory(
            config.network.rpc_url,
            config.network.registry_address,
            timeout=config.network.rpc_timeout,
        )
    )


def build_orchestrator() -> ProofOrchestrator:
    prover_cfg = config.prover
    builder = CalldataBuilder(
        encoder=GaragaCalldataEncoder(prover_cfg.garaga_bin),
        assets=AssetLoader(prover_cfg.vk_base_path, timeout=config.network.rpc_timeout),
        vk_paths=prover_cfg.vk_paths,
    )
    return ProofOrchestrator(
        runtime=NargoRuntime(prover_cfg.circuits_dir, prover_cfg.nargo_bin),
        backend=BarretenbergBackend(prover_cfg.circuits_dir, prover_cfg.bb_bin),
        calldata_builder=builder,
        nullifier_guard=NullifierGuard(build_reader()),
        network_guard=WalletNetworkGuard(config.network),
        submitter=ProofSubmitter(config.network.registry_address, config.submission.circuit_ids),
        witness_mapper=WitnessMapper(prover_cfg.max_allowed_set),
    )


def build_params(args: argparse.Namespace, predicate: PredicateType) -> ProofParameters:
    if predicate is PredicateType.AGE:
        if args.threshold is None:
            raise SystemExit("--threshold is required for age proofs")
        return AgeParameters(threshold=args.threshold, context_id=args.context, timestamp=args.timestamp)

    if not args.allowed:
        raise SystemExit("--allowed is required for membership proofs")
    allowed: List[Any] = [v.strip() for v in args.allowed.split(",") if v.strip()]
    return MembershipParameters(allowed_set=allowed, context_id=args.context, timestamp=args.timestamp)


def print_error(exc: BaseException) -> None:
    guidance = describe_error(exc)
    print(f"{guidance.title}: {guidance.message}", file=sys.stderr)
    print(f"  -> {guidance.action}", file=sys.stderr)


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2))


# ============================================================================
# Commands
# ============================================================================

async def cmd_validate(args: argparse.Namespace) -> int:
    credential = load_credential(args.credential)
    result = CredentialValidator().validate(credential, args.type)
    if result.valid:
        print(f"Credential is valid for {PredicateType.parse(args.type).value}")
        return 0
    for error in result.errors:
        print(f"  - {error}", file=sys.stderr)
    return 1


async def cmd_inputs(args: argparse.Namespace) -> int:
    predicate = PredicateType.parse(args.type)
    raw = load_credential(args.credential)
    result = CredentialValidator().validate(raw, predicate)
    if not result.valid:
        for error in result.errors:
            print(f"  - {error}", file=sys.stderr)
        return 1
    inputs = WitnessMapper(config.prover.max_allowed_set).map(
        Credential.from_dict(raw), predicate, build_params(args, predicate)
    )
    # Private inputs are printed on purpose: this is a debugging aid
    print_json(inputs)
    return 0


async def cmd_prove(args: argparse.Namespace) -> int:
    predicate = PredicateType.parse(args.type)
    orchestrator = build_orchestrator()

    proof = await orchestrator.generate_proof(load_credential(args.credential), predicate, build_params(args, predicate))
    if proof is None:
        print(f"Error: {orchestrator.state.error}", file=sys.stderr)
        return 1
    print(f"Proof generated in {proof.proving_time_ms:.0f} ms ({len(proof.public_signals)} public signals)")

    if args.verify:
        valid = await orchestrator.verify_locally()
        print(f"Local verification: {'valid' if valid else 'INVALID'}")
        if not valid:
            return 1

    calldata = await orchestrator.prepare_calldata()
    if calldata is None:
        print(f"Error: {orchestrator.state.error}", file=sys.stderr)
        return 1
    print(f"Calldata: {len(calldata.calldata)} felts, nullifier {calldata.nullifier}")

    check = orchestrator.state.reuse_check
    if check is not None:
        print(f"Nullifier status: {check.status.value}")

    if args.output:
        with open(args.output, "w") as f:
            json.dump(
                {
                    "predicate_type": predicate.value,
                    "public_signals": proof.public_signals,
                    "calldata": [hex(v) for v in calldata.calldata],
                    "nullifier": calldata.nullifier,
                },
                f,
                indent=2,
            )
        print(f"Calldata written to {args.output}")

    if not args.submit:
        return 0
    if not args.wallet_rpc:
        print("--wallet-rpc is required with --submit", file=sys.stderr)
        return 2

    wallet = JsonRpcWallet(
        args.wallet_rpc,
        StarknetRpcClient(config.network.rpc_url, timeout=config.network.rpc_timeout),
        address=args.account or "",
        wait_timeout=config.submission.tx_wait_timeout,
        poll_interval=config.submission.poll_interval,
    )
    result = await orchestrator.submit_on_chain(wallet)
    if result is None:
        state = orchestrator.state
        if state.step is ProofStep.PREVIEWING and state.reuse_check and state.reuse_check.record:
            record = state.reuse_check.record
            print(
                f"Nullifier already registered at {record.timestamp} (circuit {record.circuit_id}). "
                f"Use a different context id.",
                file=sys.stderr,
            )
        else:
            print(f"Error: {state.error}", file=sys.stderr)
        return 1

    print(f"Submitted: {result.transaction_hash}")
    url = explorer_tx_url(result.transaction_hash, config.network.explorer_url)
    if url:
        print(f"Explorer: {url}")

    store = HistoryStore(config.history.database_path)
    await store.initialize()
    try:
        await store.add(entry_from_submission(result, calldata, orchestrator.state.public_outputs))
    finally:
        await store.close()
    return 0


async def cmd_status(args: argparse.Namespace) -> int:
    record = await build_reader().record(args.nullifier)
    print_json({
        "exists": record.exists,
        "nullifier": hex(record.nullifier),
        "attribute_key": record.attribute_key,
        "threshold_or_set_hash": hex(record.threshold_or_set_hash),
        "timestamp": record.timestamp,
        "circuit_id": record.circuit_id,
    })
    return 0


async def cmd_history(args: argparse.Namespace) -> int:
    store = HistoryStore(config.history.database_path)
    await store.initialize()
    try:
        if args.clear:
            await store.clear()
            print("History cleared")
            return 0
        if args.enrich:
            entries = await load_and_enrich(store, HistoryEnricher(build_reader()), CancellationToken())
        else:
            entries = await store.list()
        print_json([entry.to_dict() for entry in entries or []])
        return 0
    finally:
        await store.close()


COMMANDS = {
    "validate": cmd_validate,
    "inputs": cmd_inputs,
    "prove": cmd_prove,
    "status": cmd_status,
    "history": cmd_history,
}


# ============================================================================
# Entry point
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Zero-knowledge credential proofs with on-chain registration",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--no-color", action="store_true", help="Disable colored log output")
    sub = parser.add_subparsers(dest="command", required=True)

    def add_proof_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("credential", help="Path to the credential JSON file")
        p.add_argument("--type", "-t", default="age", help="Predicate type: age | membership")
        p.add_argument("--threshold", type=int, help="Minimum age (age proofs)")
        p.add_argument("--allowed", help="Comma-separated allowed values, at most 8 (membership proofs)")
        p.add_argument("--context", type=int, default=0, help="Application context id (default: 0)")
        p.add_argument("--timestamp", type=int, help="Override the current timestamp (unix seconds)")

    p_validate = sub.add_parser("validate", help="Validate a credential file")
    p_validate.add_argument("credential", help="Path to the credential JSON file")
    p_validate.add_argument("--type", "-t", default="age", help="Predicate type: age | membership")

    add_proof_args(sub.add_parser("inputs", help="Print the circuit inputs for a credential"))

    p_prove = sub.add_parser("prove", help="Generate a proof and prepare calldata")
    add_proof_args(p_prove)
    p_prove.add_argument("--verify", action="store_true", help="Verify the proof locally")
    p_prove.add_argument("--output", "-o", help="Write calldata JSON to this file")
    p_prove.add_argument("--submit", action="store_true", help="Submit to the registry")
    p_prove.add_argument("--wallet-rpc", help="Wallet bridge JSON-RPC URL")
    p_prove.add_argument("--account", help="Account address used by the wallet")

    p_status = sub.add_parser("status", help="Look up a nullifier in the registry")
    p_status.add_argument("nullifier", help="Nullifier (0x hex or decimal)")

    p_history = sub.add_parser("history", help="Show local verification history")
    p_history.add_argument("--clear", action="store_true", help="Delete all local entries")
    p_history.add_argument("--enrich", action="store_true", help="Fetch on-chain confirmation")

    return parser


async def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(verbose=args.verbose, color=not args.no_color)

    net = get_current_network()
    logger.info("[CHAIN] Network: %s (%s)", net["name"], net["chain_alias"])

    try:
        return await COMMANDS[args.command](args)
    except (ZkGateError, ValueError, OSError) as e:
        print_error(e)
        return 1


def run() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    run()
