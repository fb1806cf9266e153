#!/usr/bin/env python3
"""Example: Size a workload and get hardware recommendations using the Python API."""

from dataclasses import asdict

from llm_sizer import (
    ACCELERATOR_LIBRARY,
    HardwareMatcher,
    RequirementEstimator,
    WorkloadSpec,
    get_gpu_from_library,
    hardware_inputs,
)
from llm_sizer.recommender import estimate_cloud_cost, format_recommendation


def main():
    """Run basic sizing example."""

    # Describe the workload; missing architecture details are inferred
    workload = WorkloadSpec(
        params_b=70,
        weight_precision="int8",
        kv_precision="int8",
        prompt_tokens=8192,
        new_tokens=512,
        batch_size=1,
        target_tps=10,
    )

    result = RequirementEstimator().estimate(workload)

    print("=" * 60)
    print("LLM Sizing Example")
    print("=" * 60)
    print(f"\nInferred shape: {result.layers} layers, hidden {result.hidden_size}, {result.heads} heads")
    print(f"VRAM:      {result.total_vram_gb:.1f} GB")
    print(f"Compute:   {result.required_tflops:.2f} TFLOPS")
    print(f"Bandwidth: {result.required_bw_gbps:.0f} GB/s (conservative)")

    # Check the same workload against two H100s
    h100 = get_gpu_from_library("h100-80gb")
    checked = RequirementEstimator().estimate(
        WorkloadSpec.from_inputs({**asdict(workload), **hardware_inputs(h100, count=2)})
    )
    print(f"\nOn 2x {h100.name}:")
    print(f"  TTFT:         {checked.ttft_ms:.0f} ms")
    print(f"  VRAM fits:    {checked.vram_ok}")
    print(f"  Compute fits: {checked.compute_ok}")
    print(f"  BW fits:      {checked.bandwidth_ok}")

    # Recommend hardware from the preloaded library
    recommendations = HardwareMatcher(ACCELERATOR_LIBRARY).recommend(result)
    if recommendations.is_empty:
        print("\nNo hardware in the catalog fits this workload.")
        return

    print("\nRecommended configurations:")
    for rec in recommendations.all:
        cloud = estimate_cloud_cost(rec)
        cloud_info = f", ~${cloud.monthly:,.0f}/month in the cloud" if cloud else ""
        price_info = f"${rec.total_cost_usd:,.0f}" if rec.total_cost_usd else "price n/a"
        print(f"  - {format_recommendation(rec)} ({price_info}{cloud_info})")


if __name__ == "__main__":
    main()
