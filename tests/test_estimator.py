"""Unit tests for the requirement estimator."""

import json

import pytest

from llm_sizer.estimator import (
    FIT_RATIO,
    OPTIMISTIC_WEIGHT_FRACTION,
    TTFT_OVERHEAD_MS,
    WARN_RATIO,
    WORKSPACE_FRACTION,
    RequirementEstimator,
    estimate_requirements,
    fit_status,
)
from llm_sizer.models import Precision, WorkloadSpec


@pytest.fixture
def estimator():
    """Create an estimator with the default calibration."""
    return RequirementEstimator()


@pytest.fixture
def llama_70b_int8():
    """70B model, int8 weights and KV, 8k prompt, 512 new tokens at 10 tok/s."""
    return WorkloadSpec(
        params_b=70,
        weight_precision="int8",
        kv_precision="int8",
        layers=80,
        hidden_size=8192,
        heads=64,
        prompt_tokens=8192,
        new_tokens=512,
        batch_size=1,
        target_tps=10,
    )


def _workload(**overrides):
    fields = {"params_b": 8, "prompt_tokens": 2048, "new_tokens": 256, "target_tps": 20}
    fields.update(overrides)
    return WorkloadSpec(**fields)


def test_calibration_constants():
    """Pin the empirical calibration constants."""
    assert WORKSPACE_FRACTION == 0.12
    assert TTFT_OVERHEAD_MS == 80.0
    assert OPTIMISTIC_WEIGHT_FRACTION == 0.2
    assert FIT_RATIO == 0.85
    assert WARN_RATIO == 1.0


def test_memory_70b_int8(estimator, llama_70b_int8):
    """Test the memory breakdown for a 70B int8 workload."""
    result = estimator.estimate(llama_70b_int8)

    assert result.head_dim == 128
    assert result.total_seq == 8704
    assert result.weight_bytes_total == pytest.approx(70e9)
    assert result.kv_bytes_per_token == pytest.approx(1_310_720)
    assert result.kv_cache_bytes == pytest.approx(11_408_506_880)
    assert result.workspace_bytes == pytest.approx(8.4e9)
    assert result.total_vram_gb == pytest.approx(89.80850688)


def test_compute_70b_int8(estimator, llama_70b_int8):
    """Test prefill and decode FLOPs for a 70B int8 workload."""
    result = estimator.estimate(llama_70b_int8)

    assert result.avg_decode_seq == 8448
    assert result.prefill_flops == pytest.approx(2 * 70e9 * 8192)
    assert result.attn_prefill_flops == pytest.approx(4 * 80 * 8192**2 * 8192)
    assert result.total_prefill_flops == pytest.approx(result.prefill_flops + result.attn_prefill_flops)
    assert result.decode_flops_per_token == pytest.approx(162_145_925_120)
    assert result.required_tflops == pytest.approx(1.6214592512)


def test_bandwidth_70b_int8(estimator, llama_70b_int8):
    """Test decode bandwidth bounds for a 70B int8 workload."""
    result = estimator.estimate(llama_70b_int8)

    assert result.weight_read_bytes_per_token == pytest.approx(70e9)
    assert result.kv_read_bytes_per_token == pytest.approx(11_072_962_560)
    assert result.kv_write_bytes_per_token == pytest.approx(1_310_720)
    assert result.amortized_bytes_per_token == pytest.approx(81_074_273_280)
    assert result.required_bw_gbps_conservative == pytest.approx(810.7427328)
    assert result.required_bw_gbps_optimistic == pytest.approx(250.7427328)
    assert result.required_bw_gbps == result.required_bw_gbps_conservative


def test_hardware_fields_unknown_without_peaks(estimator, llama_70b_int8):
    """Hardware-dependent fields are None, not zero or False."""
    result = estimator.estimate(llama_70b_int8)

    assert result.effective_tflops is None
    assert result.effective_bw_gbps is None
    assert result.ttft_ms is None
    assert result.compute_ok is None
    assert result.bandwidth_ok is None
    assert result.vram_ok is None
    assert result.ttft_ok is None


def test_hardware_fields_with_peaks(estimator):
    """Test effective throughput, TTFT and fit flags with known hardware."""
    spec = _workload(peak_tflops=989, mem_bandwidth_gbps=3350, vram_available_gb=80)
    result = estimator.estimate(spec)

    assert result.effective_tflops == pytest.approx(989 * 0.4)
    assert result.effective_bw_gbps == pytest.approx(3350 * 0.6)
    expected_ttft = result.total_prefill_flops / (989 * 0.4 * 1e12) * 1000 + 80
    assert result.ttft_ms == pytest.approx(expected_ttft)
    assert result.compute_ok is True
    assert result.bandwidth_ok is True
    assert result.vram_ok is True
    assert result.ttft_ok is (expected_ttft <= 1000)


def test_effective_tflops_uses_better_of_float_and_int(estimator):
    """Integer TOPS count as TFLOPS / 1000 when that is the larger figure."""
    result = estimator.estimate(_workload(peak_tflops=100, peak_tops=1_000_000))
    assert result.effective_tflops == pytest.approx(1_000_000 * 0.4 / 1000)

    result = estimator.estimate(_workload(peak_tops=2000))
    assert result.effective_tflops == pytest.approx(0.8)

    result = estimator.estimate(_workload(peak_tflops=989, peak_tops=1979))
    assert result.effective_tflops == pytest.approx(989 * 0.4)


def test_fit_flags_fail(estimator):
    """Flags are False when the hardware falls short."""
    spec = _workload(
        params_b=70,
        peak_tflops=1,
        mem_bandwidth_gbps=10,
        vram_available_gb=24,
        ttft_budget_ms=50,
    )
    result = estimator.estimate(spec)

    assert result.compute_ok is False
    assert result.bandwidth_ok is False
    assert result.vram_ok is False
    assert result.ttft_ok is False


def test_zero_token_workload(estimator):
    """A workload with no prompt and no output degrades gracefully."""
    result = estimator.estimate(WorkloadSpec(params_b=7))

    assert result.total_seq == 0
    assert result.kv_cache_bytes == 0
    assert result.prefill_flops == 0
    assert result.attn_prefill_flops == 0
    assert result.avg_decode_seq == 0.5
    assert result.total_vram_gb == pytest.approx(7e9 * 2 * 1.12 / 1e9)
    assert result.required_tflops > 0
    assert result.required_bw_gbps_conservative > 0


def test_zero_target_tps(estimator):
    """Zero throughput target needs no decode compute or bandwidth."""
    result = estimator.estimate(_workload(target_tps=0))

    assert result.required_tflops == 0
    assert result.required_bw_gbps_conservative == 0
    assert result.required_bw_gbps_optimistic == 0


def test_memory_monotonic_in_tokens_and_batch(estimator):
    """VRAM grows with prompt length, output length and batch size."""
    base = estimator.estimate(_workload()).total_vram_gb

    assert estimator.estimate(_workload(prompt_tokens=4096)).total_vram_gb > base
    assert estimator.estimate(_workload(new_tokens=1024)).total_vram_gb > base
    assert estimator.estimate(_workload(batch_size=4)).total_vram_gb > base


def test_requirements_never_fall_as_tokens_grow(estimator):
    """More prompt or output tokens never lower VRAM, compute or bandwidth."""
    prompts = (0, 1, 100, 4096)
    news = (0, 1, 2, 512)

    def figures(prompt_tokens, new_tokens):
        result = estimator.estimate(_workload(prompt_tokens=prompt_tokens, new_tokens=new_tokens))
        return (result.total_vram_gb, result.required_tflops, result.required_bw_gbps_conservative)

    grid = {(p, n): figures(p, n) for p in prompts for n in news}

    for i, p in enumerate(prompts):
        for j, n in enumerate(news):
            if i + 1 < len(prompts):
                bigger = grid[(prompts[i + 1], n)]
                assert all(b >= a for a, b in zip(grid[(p, n)], bigger))
            if j + 1 < len(news):
                bigger = grid[(p, news[j + 1])]
                assert all(b >= a for a, b in zip(grid[(p, n)], bigger))

    # 0 -> 1 new tokens: the decode context is unchanged, only the KV cache grows
    zero, one = estimator.estimate(_workload(new_tokens=0)), estimator.estimate(_workload(new_tokens=1))
    assert one.avg_decode_seq == zero.avg_decode_seq
    assert one.required_tflops == zero.required_tflops
    assert one.total_vram_gb > zero.total_vram_gb


def test_compute_and_bandwidth_monotonic_in_target_tps(estimator):
    """Compute and bandwidth scale with the throughput target."""
    slow = estimator.estimate(_workload(target_tps=10))
    fast = estimator.estimate(_workload(target_tps=20))

    assert fast.required_tflops == pytest.approx(2 * slow.required_tflops)
    assert fast.required_bw_gbps_conservative == pytest.approx(2 * slow.required_bw_gbps_conservative)


def test_batch_amortizes_weight_reads(estimator):
    """Per-token traffic falls as the batch shares each weight read."""
    single = estimator.estimate(_workload(batch_size=1))
    batched = estimator.estimate(_workload(batch_size=8))

    assert batched.amortized_bytes_per_token < single.amortized_bytes_per_token
    # total bandwidth still rises with more streams
    assert batched.required_bw_gbps_conservative > single.required_bw_gbps_conservative


def test_precision_ordering(estimator):
    """Lower precision means less memory and less bandwidth."""
    results = [
        estimator.estimate(_workload(weight_precision=p, kv_precision=p))
        for p in (Precision.BF16, Precision.INT8, Precision.INT4)
    ]

    vram = [r.total_vram_gb for r in results]
    bandwidth = [r.required_bw_gbps_conservative for r in results]
    assert vram[0] > vram[1] > vram[2]
    assert bandwidth[0] > bandwidth[1] > bandwidth[2]


def test_optimistic_never_exceeds_conservative(estimator):
    """The optimistic bound is at most the conservative one."""
    for batch_size in (1, 4, 32):
        for precision in Precision:
            result = estimator.estimate(_workload(batch_size=batch_size, weight_precision=precision))
            assert result.required_bw_gbps_optimistic <= result.required_bw_gbps_conservative


def test_moe_active_params(estimator):
    """Active parameters drive compute and bandwidth, total parameters drive memory."""
    dense = estimator.estimate(_workload(params_b=47))
    moe = estimator.estimate(_workload(params_b=47, active_params_b=13))

    assert moe.total_vram_gb == pytest.approx(dense.total_vram_gb)
    assert moe.required_tflops < dense.required_tflops
    assert moe.required_bw_gbps_conservative < dense.required_bw_gbps_conservative
    assert moe.weight_read_bytes_per_token == pytest.approx(13e9 * 2)


def test_shape_is_inferred(estimator):
    """Missing dimensions are resolved before estimating."""
    result = estimator.estimate(WorkloadSpec(params_b=70))

    assert result.layers == 80
    assert result.hidden_size == 8576


def test_estimate_is_idempotent(estimator, llama_70b_int8):
    """Estimating the same workload twice gives equal results."""
    assert estimator.estimate(llama_70b_int8) == estimator.estimate(llama_70b_int8)
    assert estimate_requirements(llama_70b_int8) == estimator.estimate(llama_70b_int8)


def test_custom_calibration():
    """Calibration constants can be overridden per estimator."""
    estimator = RequirementEstimator(workspace_fraction=0.0, ttft_overhead_ms=0.0)
    spec = WorkloadSpec(params_b=7, prompt_tokens=1000, peak_tflops=100)

    result = estimator.estimate(spec)

    assert result.workspace_bytes == 0
    assert result.ttft_ms == pytest.approx(result.total_prefill_flops / (40 * 1e12) * 1000)


def test_to_dict_is_json_serializable(estimator, llama_70b_int8):
    """Test to_dict output round-trips through JSON."""
    data = json.loads(json.dumps(estimator.estimate(llama_70b_int8).to_dict()))

    assert data["weight_precision"] == "int8"
    assert data["kv_precision"] == "int8"
    assert data["total_vram_gb"] == pytest.approx(89.80850688)
    assert data["required_bw_gbps"] == pytest.approx(810.7427328)
    assert data["ttft_ms"] is None


@pytest.mark.parametrize(
    "required,available,status",
    [
        (50, 100, "fit"),
        (85, 100, "fit"),
        (90, 100, "warn"),
        (100, 100, "warn"),
        (101, 100, "danger"),
        (10, None, None),
        (10, 0, None),
    ],
)
def test_fit_status(required, available, status):
    """Test usage-ratio classification."""
    assert fit_status(required, available) == status
