"""Analytical resource estimator for LLM serving workloads.

Computes the memory footprint (weights + KV cache + workspace), the compute
rate (prefill and decode FLOPs) and the memory bandwidth needed to sustain a
workload, and, when hardware peaks are supplied, the effective throughput and
a time-to-first-token projection.

The model is deliberately first-order:
- Prefill is compute-bound: a dense ``2 * params * tokens`` term plus an
  attention term quadratic in prompt length.
- Decode is memory-bound: every generated token streams the active weights
  (amortized across the batch) plus the KV cache of its context.

References:
- "LLM Inference Unveiled: Survey and Roofline Model Insights" (arXiv:2402.16363)
"""

import logging
from typing import Optional

from .models import RequirementsResult, WorkloadSpec
from .shape import ShapeResolver

logger = logging.getLogger(__name__)

# Calibration constants. These are empirical knobs rather than derived
# quantities; tests pin them so that changes are deliberate.

# Activations, allocator fragmentation and runtime buffers, as a fraction of
# the weight footprint.
WORKSPACE_FRACTION = 0.12

# Fixed scheduling and kernel-launch latency added to the prefill time.
TTFT_OVERHEAD_MS = 80.0

# Share of the active weights assumed to stream from DRAM per token when
# weights are mostly cache-resident (optimistic bandwidth bound).
OPTIMISTIC_WEIGHT_FRACTION = 0.2

# Ratio thresholds for fit_status()
FIT_RATIO = 0.85
WARN_RATIO = 1.0


def fit_status(required: float, available: Optional[float]) -> Optional[str]:
    """Classify how comfortably a requirement fits an available resource.

    Args:
        required: Required amount (GB, TFLOPS or GB/s)
        available: Available amount in the same unit, or None if unknown

    Returns:
        "fit" when usage is at most 85%, "warn" up to 100%, "danger" above,
        or None when the available amount is unknown
    """
    if available is None or available <= 0:
        return None
    ratio = required / available
    if ratio <= FIT_RATIO:
        return "fit"
    if ratio <= WARN_RATIO:
        return "warn"
    return "danger"


class RequirementEstimator:
    """Estimates memory, compute and bandwidth requirements for a workload.

    Stateless apart from its configuration: calling estimate() twice with the
    same spec returns equal results.
    """

    def __init__(
        self,
        shape_resolver: Optional[ShapeResolver] = None,
        workspace_fraction: float = WORKSPACE_FRACTION,
        ttft_overhead_ms: float = TTFT_OVERHEAD_MS,
        optimistic_weight_fraction: float = OPTIMISTIC_WEIGHT_FRACTION,
    ):
        """Initialize the estimator.

        Args:
            shape_resolver: Resolver for missing model dimensions (creates default if None)
            workspace_fraction: Workspace allowance as a fraction of weight bytes
            ttft_overhead_ms: Fixed latency added to the prefill time
            optimistic_weight_fraction: Weight share streamed per token in the optimistic bound
        """
        self.shape_resolver = shape_resolver or ShapeResolver()
        self.workspace_fraction = workspace_fraction
        self.ttft_overhead_ms = ttft_overhead_ms
        self.optimistic_weight_fraction = optimistic_weight_fraction

    def estimate(self, spec: WorkloadSpec) -> RequirementsResult:
        """Estimate the resources needed to serve *spec*.

        Args:
            spec: Validated workload description

        Returns:
            RequirementsResult with every requirement populated and the
            hardware-dependent fields set only when the matching peak figure
            is known
        """
        shape = self.shape_resolver.resolve(
            spec.params_b,
            layers=spec.layers,
            hidden_size=spec.hidden_size,
            heads=spec.heads,
        )
        layers = shape.layers
        hidden_size = shape.hidden_size

        weight_bytes = spec.weight_precision.bytes_per_element
        kv_bytes = spec.kv_precision.bytes_per_element
        batch = spec.batch_size
        prompt = spec.prompt_tokens
        total_seq = prompt + spec.new_tokens

        # Average context length seen while generating: the context grows
        # linearly from the prompt to prompt + new_tokens.
        avg_decode_seq = prompt + max(spec.new_tokens, 1) * 0.5
        total_throughput = spec.target_tps * batch

        # Memory: weights + KV cache + workspace
        weight_bytes_total = spec.params_b * 1e9 * weight_bytes
        kv_bytes_per_token = layers * hidden_size * 2 * kv_bytes  # K and V
        kv_cache_bytes = batch * total_seq * kv_bytes_per_token
        workspace_bytes = weight_bytes_total * self.workspace_fraction
        total_vram_gb = (weight_bytes_total + kv_cache_bytes + workspace_bytes) / 1e9

        # Compute: prefill is 2 FLOPs per active parameter per token plus
        # QK^T and Attn@V, both quadratic in the prompt length
        active_params = spec.active_params_b * 1e9
        prefill_flops = 2 * active_params * prompt * batch
        attn_prefill_flops = 4 * layers * prompt**2 * hidden_size * batch
        total_prefill_flops = prefill_flops + attn_prefill_flops

        # Decode: one query token attends over the average context
        decode_flops_per_token = 2 * active_params + 4 * layers * avg_decode_seq * hidden_size
        required_tflops = decode_flops_per_token * total_throughput / 1e12

        # Bandwidth: decode streams the active weights and the context's KV
        weight_read_bytes_per_token = active_params * weight_bytes
        kv_read_bytes_per_token = layers * max(avg_decode_seq, 1) * hidden_size * 2 * kv_bytes
        kv_write_bytes_per_token = layers * hidden_size * 2 * kv_bytes
        kv_traffic = kv_read_bytes_per_token + kv_write_bytes_per_token

        amortized_bytes_per_token = weight_read_bytes_per_token / batch + kv_traffic
        amortized_bytes_per_token_optimistic = (
            weight_read_bytes_per_token * self.optimistic_weight_fraction / batch + kv_traffic
        )
        required_bw_gbps_conservative = amortized_bytes_per_token * total_throughput / 1e9
        required_bw_gbps_optimistic = amortized_bytes_per_token_optimistic * total_throughput / 1e9

        # Hardware-dependent figures stay None when the peak is unknown
        effective_tflops = None
        if spec.peak_tflops or spec.peak_tops:
            effective_tflops = max(
                (spec.peak_tflops or 0.0) * spec.util_compute,
                (spec.peak_tops or 0.0) * spec.util_compute / 1000,
            )

        effective_bw_gbps = None
        if spec.mem_bandwidth_gbps:
            effective_bw_gbps = spec.mem_bandwidth_gbps * spec.util_bandwidth

        ttft_ms = None
        if effective_tflops is not None and effective_tflops > 0:
            ttft_ms = (
                total_prefill_flops / (effective_tflops * 1e12)
            ) * 1000 + self.ttft_overhead_ms

        compute_ok = None if effective_tflops is None else effective_tflops >= required_tflops
        bandwidth_ok = (
            None if effective_bw_gbps is None else effective_bw_gbps >= required_bw_gbps_conservative
        )
        vram_ok = None if not spec.vram_available_gb else total_vram_gb <= spec.vram_available_gb
        ttft_ok = None if ttft_ms is None else ttft_ms <= spec.ttft_budget_ms

        logger.debug(
            "Estimated %.2fB/%s: %.2f GB VRAM, %.3f TFLOPS, %.2f GB/s (conservative)",
            spec.params_b,
            spec.weight_precision.value,
            total_vram_gb,
            required_tflops,
            required_bw_gbps_conservative,
        )

        return RequirementsResult(
            params_b=spec.params_b,
            active_params_b=spec.active_params_b,
            weight_precision=spec.weight_precision,
            kv_precision=spec.kv_precision,
            prompt_tokens=prompt,
            new_tokens=spec.new_tokens,
            batch_size=batch,
            target_tps=spec.target_tps,
            ttft_budget_ms=spec.ttft_budget_ms,
            total_seq=total_seq,
            layers=layers,
            hidden_size=hidden_size,
            heads=shape.heads,
            head_dim=shape.head_dim,
            weight_bytes=weight_bytes,
            kv_bytes=kv_bytes,
            weight_bytes_total=weight_bytes_total,
            kv_bytes_per_token=kv_bytes_per_token,
            kv_cache_bytes=kv_cache_bytes,
            workspace_bytes=workspace_bytes,
            total_vram_gb=total_vram_gb,
            prefill_flops=prefill_flops,
            attn_prefill_flops=attn_prefill_flops,
            total_prefill_flops=total_prefill_flops,
            avg_decode_seq=avg_decode_seq,
            decode_flops_per_token=decode_flops_per_token,
            required_tflops=required_tflops,
            weight_read_bytes_per_token=weight_read_bytes_per_token,
            kv_read_bytes_per_token=kv_read_bytes_per_token,
            kv_write_bytes_per_token=kv_write_bytes_per_token,
            amortized_bytes_per_token=amortized_bytes_per_token,
            amortized_bytes_per_token_optimistic=amortized_bytes_per_token_optimistic,
            required_bw_gbps_conservative=required_bw_gbps_conservative,
            required_bw_gbps_optimistic=required_bw_gbps_optimistic,
            effective_tflops=effective_tflops,
            effective_bw_gbps=effective_bw_gbps,
            ttft_ms=ttft_ms,
            compute_ok=compute_ok,
            bandwidth_ok=bandwidth_ok,
            vram_ok=vram_ok,
            ttft_ok=ttft_ok,
        )


def estimate_requirements(spec: WorkloadSpec) -> RequirementsResult:
    """Estimate requirements with the default calibration constants."""
    return RequirementEstimator().estimate(spec)
