"""Command-line interface for hardware sizing."""

import argparse
import json
import logging
import sys
from typing import Any, Dict, List, Optional

from .estimator import RequirementEstimator, fit_status
from .gpu_library import (
    ACCELERATOR_LIBRARY,
    get_gpu_from_library,
    get_gpu_specs,
    hardware_inputs,
    load_catalog_from_json,
)
from .models import Precision, RequirementsResult, WorkloadSpec
from .recommender import HardwareMatcher, format_recommendation, recommendations_to_dataframe
from .ttft import format_ttft

logger = logging.getLogger(__name__)

# Flag dests read by WorkloadSpec.from_inputs; they override the workload file
WORKLOAD_FLAGS = (
    "params_b",
    "active_params_b",
    "num_experts",
    "top_k",
    "weight_precision",
    "kv_precision",
    "layers",
    "hidden_size",
    "heads",
    "prompt_tokens",
    "new_tokens",
    "batch_size",
    "target_tps",
    "ttft_budget_ms",
    "util_compute",
    "util_bandwidth",
    "peak_tflops",
    "peak_tops",
    "mem_bandwidth_gbps",
)


def load_workload_from_json(filepath: str) -> Dict[str, Any]:
    """Load raw workload inputs (a JSON object keyed by WorkloadSpec fields)."""
    with open(filepath, "r") as f:
        data = json.load(f)

    if not isinstance(data, dict):
        raise ValueError(f"Workload file {filepath} must contain a JSON object")
    return data


def build_workload(args: argparse.Namespace) -> WorkloadSpec:
    """Merge the workload file, the --gpu shortcut and explicit flags, in that order."""
    inputs: Dict[str, Any] = {}
    if args.workload:
        inputs.update(load_workload_from_json(args.workload))

    if args.gpu:
        gpu = get_gpu_from_library(args.gpu)
        if gpu is None:
            raise ValueError(f"GPU '{args.gpu}' not found in library")
        inputs.update(hardware_inputs(gpu, args.gpu_count))

    for name in WORKLOAD_FLAGS:
        value = getattr(args, name)
        if value is not None:
            inputs[name] = value

    return WorkloadSpec.from_inputs(inputs)


def build_catalog(args: argparse.Namespace) -> List:
    if args.gpu_library:
        catalog = get_gpu_specs(args.gpu_library)
    elif args.gpus:
        catalog = load_catalog_from_json(args.gpus)
    else:
        catalog = list(ACCELERATOR_LIBRARY)

    if args.extend_gpus:
        custom_gpus = load_catalog_from_json(args.extend_gpus)
        catalog.extend(custom_gpus)
        print(f"Extended GPU list with {len(custom_gpus)} custom GPU(s)", file=sys.stderr)
    return catalog


def _fmt_flag(value: Optional[bool]) -> str:
    if value is None:
        return "unknown"
    return "yes" if value else "NO"


def format_requirements(result: RequirementsResult, vram_available_gb: Optional[float] = None) -> str:
    """Human-readable summary of a RequirementsResult."""
    lines = [
        f"Model: {result.params_b:g}B params ({result.active_params_b:g}B active), "
        f"{result.layers} layers, hidden {result.hidden_size}, "
        f"{result.heads} heads x {result.head_dim}",
        f"Precision: weights {result.weight_precision.value}, KV {result.kv_precision.value}",
        f"Workload: {result.prompt_tokens} prompt + {result.new_tokens} new tokens, "
        f"batch {result.batch_size}, {result.target_tps:g} tok/s per stream",
        "",
        f"VRAM:      {result.total_vram_gb:.2f} GB "
        f"(weights {result.weight_bytes_total / 1e9:.2f}, "
        f"KV {result.kv_cache_bytes / 1e9:.2f}, "
        f"workspace {result.workspace_bytes / 1e9:.2f})",
        f"Compute:   {result.required_tflops:.3f} TFLOPS decode, "
        f"{result.total_prefill_flops / 1e12:.1f} TFLOP prefill",
        f"Bandwidth: {result.required_bw_gbps_conservative:.1f} GB/s conservative, "
        f"{result.required_bw_gbps_optimistic:.1f} GB/s optimistic",
    ]
    if result.effective_tflops is not None:
        lines.append(
            f"Effective compute:   {result.effective_tflops:.1f} TFLOPS "
            f"(fits: {_fmt_flag(result.compute_ok)})"
        )
    if result.effective_bw_gbps is not None:
        lines.append(
            f"Effective bandwidth: {result.effective_bw_gbps:.1f} GB/s "
            f"(fits: {_fmt_flag(result.bandwidth_ok)})"
        )
    if result.vram_ok is not None:
        lines.append(
            f"VRAM available:      {vram_available_gb:.1f} GB "
            f"(fits: {_fmt_flag(result.vram_ok)}, {fit_status(result.total_vram_gb, vram_available_gb)})"
        )
    if result.ttft_ms is not None:
        lines.append(
            f"TTFT:                {format_ttft(result.ttft_ms / 1000)} "
            f"(budget {result.ttft_budget_ms:.0f} ms, fits: {_fmt_flag(result.ttft_ok)})"
        )
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Estimate hardware requirements for serving an LLM",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Requirements for a 70B model in int8 with an 8k prompt
  llm-sizer --params-b 70 --weight-precision int8 --kv-precision int8 \\
      --prompt-tokens 8192 --new-tokens 512

  # Check the workload against two H100s and print a table
  llm-sizer --workload examples/workload.json --gpu h100-80gb --gpu-count 2 --format table

  # Recommend hardware from a subset of the library
  llm-sizer --params-b 8 --recommend --gpu-library rtx-4090 l40s a100-80gb

  # Recommend hardware including custom accelerators
  llm-sizer --params-b 8 --recommend --extend-gpus examples/custom_gpus.json

  # List the preloaded library
  llm-sizer --list-gpus
        """,
    )

    workload = parser.add_argument_group("workload")
    workload.add_argument("--workload", help="Path to JSON file with workload inputs")
    workload.add_argument("--params-b", type=float, help="Total parameters in billions")
    workload.add_argument(
        "--active-params-b",
        type=float,
        help="Active parameters per token in billions (MoE; default: --params-b)",
    )
    workload.add_argument(
        "--num-experts",
        type=int,
        help="Experts per MoE layer; derives --active-params-b when it is not given",
    )
    workload.add_argument("--top-k", type=int, help="Experts routed per token (default: 1)")
    precisions = [p.value for p in Precision]
    workload.add_argument("--weight-precision", choices=precisions, help="Weight precision (default: bf16)")
    workload.add_argument("--kv-precision", choices=precisions, help="KV cache precision (default: bf16)")
    workload.add_argument("--layers", type=int, help="Layer count override")
    workload.add_argument("--hidden-size", type=int, help="Hidden size override")
    workload.add_argument("--heads", type=int, help="Attention head count override")
    workload.add_argument("--prompt-tokens", type=int, help="Prompt length in tokens (default: 0)")
    workload.add_argument("--new-tokens", type=int, help="Generated tokens (default: 0)")
    workload.add_argument("--batch-size", type=int, help="Concurrent streams (default: 1)")
    workload.add_argument("--target-tps", type=float, help="Tokens/second per stream (default: 1)")
    workload.add_argument("--ttft-budget-ms", type=float, help="TTFT budget in ms (default: 1000)")
    workload.add_argument("--util-compute", type=float, help="Realized compute fraction (default: 0.4)")
    workload.add_argument("--util-bandwidth", type=float, help="Realized bandwidth fraction (default: 0.6)")

    hardware = parser.add_argument_group("hardware")
    hardware.add_argument("--peak-tflops", type=float, help="Hardware peak TFLOPS")
    hardware.add_argument("--peak-tops", type=float, help="Hardware peak INT8 TOPS")
    hardware.add_argument("--mem-bandwidth-gbps", type=float, help="Hardware memory bandwidth in GB/s")
    hardware.add_argument("--gpu", help="Fill hardware figures from a library GPU id")
    hardware.add_argument("--gpu-count", type=int, default=1, help="Number of --gpu devices (default: 1)")

    catalog_group = parser.add_mutually_exclusive_group()
    catalog_group.add_argument("--gpus", help="Path to JSON file with the accelerator catalog to search")
    catalog_group.add_argument(
        "--gpu-library",
        nargs="+",
        metavar="GPU",
        help="Search only these library GPUs (e.g., rtx-4090 l40s h100-80gb)",
    )
    catalog_group.add_argument(
        "--list-gpus",
        action="store_true",
        help="List all available GPUs in the preloaded library and exit",
    )
    parser.add_argument("--extend-gpus", help="Path to JSON file with additional custom GPUs")

    parser.add_argument("--recommend", action="store_true", help="Recommend hardware configurations")
    parser.add_argument(
        "--format", choices=["json", "table"], default="json", help="Output format (default: json)"
    )
    parser.add_argument("--output", help="Path to output file (default: stdout)")
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="WARNING",
    )

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        if args.list_gpus:
            print("Available GPUs in the library:")
            for gpu in ACCELERATOR_LIBRARY:
                print(
                    f"  {gpu.id}: {gpu.name} [{gpu.category}] "
                    f"({gpu.vram_gb}GB, {gpu.tflops_fp16} TFLOPS FP16, {gpu.bandwidth_gbps} GB/s)"
                )
            sys.exit(0)

        if not args.workload and args.params_b is None:
            print("Error: --params-b or --workload is required", file=sys.stderr)
            parser.print_help()
            sys.exit(1)

        spec = build_workload(args)
        logger.debug("Workload: %s", spec)
        result = RequirementEstimator().estimate(spec)

        recommendations = None
        if args.recommend:
            catalog = build_catalog(args)
            if not catalog:
                print("Error: No GPUs found or selected", file=sys.stderr)
                sys.exit(1)
            recommendations = HardwareMatcher(catalog).recommend(result)

        if args.format == "table":
            sections = [format_requirements(result, spec.vram_available_gb)]
            if recommendations is not None:
                if recommendations.is_empty:
                    sections.append("No hardware configuration in the catalog fits this workload.")
                else:
                    for title, recs in (
                        ("Consumer", recommendations.consumer),
                        ("Professional", recommendations.professional),
                        ("Datacenter", recommendations.datacenter),
                    ):
                        if recs:
                            table = recommendations_to_dataframe(recs).to_string(
                                index=False, float_format=lambda x: f"{x:,.1f}"
                            )
                            sections.append(f"=== {title} ===\n{table}")
            output = "\n\n".join(sections)
        else:
            output_data = {
                "requirements": result.to_dict(),
                "recommendations": recommendations.to_dict() if recommendations is not None else None,
            }
            output = json.dumps(output_data, indent=2)

        if args.output:
            with open(args.output, "w") as f:
                f.write(output)
            print(f"Results written to {args.output}")
        else:
            print(output)

        if recommendations is not None:
            print("\n=== Summary ===", file=sys.stderr)
            if recommendations.is_empty:
                print("  No compatible hardware", file=sys.stderr)
            for rec in recommendations.all:
                price = f" (${rec.total_cost_usd:,.0f})" if rec.total_cost_usd else ""
                print(f"  {format_recommendation(rec)}{price}", file=sys.stderr)

    except FileNotFoundError as e:
        print(f"Error: File not found - {e}", file=sys.stderr)
        sys.exit(1)
    except json.JSONDecodeError as e:
        print(f"Error: Invalid JSON - {e}", file=sys.stderr)
        sys.exit(1)
    except (ValueError, TypeError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
