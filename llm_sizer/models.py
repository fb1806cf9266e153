"""Data models for workloads, accelerator specs and sizing results."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Mapping, Optional

from .errors import InvalidAcceleratorError, InvalidWorkloadError

ACCELERATOR_CATEGORIES = ("consumer", "professional", "apple", "datacenter")


class Precision(str, Enum):
    """Numeric precision used to store weights or the KV cache."""

    BF16 = "bf16"
    FP16 = "fp16"
    FP8 = "fp8"
    INT8 = "int8"
    INT4 = "int4"

    @property
    def bytes_per_element(self) -> float:
        """Bytes needed to store one element at this precision."""
        return BYTES_PER_PRECISION[self]

    @classmethod
    def parse(cls, value: Any, field_name: str = "precision") -> "Precision":
        """Parse a precision name (case-insensitive) or pass a member through.

        Raises:
            InvalidWorkloadError: If the name is not a supported precision.
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(p.value for p in cls)
            raise InvalidWorkloadError(
                field_name, f"unknown precision {value!r} (expected one of: {choices})"
            ) from None


BYTES_PER_PRECISION: Dict[Precision, float] = {
    Precision.BF16: 2,
    Precision.FP16: 2,
    Precision.FP8: 1,
    Precision.INT8: 1,
    Precision.INT4: 0.5,
}


def _as_float(field_name: str, value: Any) -> float:
    if isinstance(value, bool):
        raise InvalidWorkloadError(field_name, f"expected a number, got {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidWorkloadError(field_name, f"expected a number, got {value!r}") from None
    if not math.isfinite(number):
        raise InvalidWorkloadError(field_name, f"must be finite, got {value!r}")
    return number


def _as_count(field_name: str, value: Any, minimum: int) -> int:
    number = _as_float(field_name, value)
    if not number.is_integer():
        raise InvalidWorkloadError(field_name, f"must be a whole number, got {value!r}")
    if number < minimum:
        raise InvalidWorkloadError(field_name, f"must be >= {minimum}, got {value!r}")
    return int(number)


def _read_number(inputs: Mapping[str, Any], key: str) -> Optional[float]:
    """Read a loosely-typed numeric form value; junk and non-finite read as missing."""
    value = inputs.get(key)
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


@dataclass(frozen=True)
class WorkloadSpec:
    """Describes an LLM serving workload to be sized.

    Attributes:
        params_b: Total parameter count in billions (drives memory footprint)
        active_params_b: Parameters activated per token in billions
            (defaults to params_b; smaller for mixture-of-experts models)
        weight_precision: Storage precision of the weights
        kv_precision: Storage precision of the KV cache
        layers: Optional transformer layer count override
        hidden_size: Optional hidden dimension override
        heads: Optional attention head count override
        prompt_tokens: Prefill length per request
        new_tokens: Generated tokens per request
        batch_size: Number of concurrent request streams
        target_tps: Desired output tokens/second per stream
        ttft_budget_ms: First-token latency budget (only used for ttft_ok)
        util_compute: Realized fraction of peak compute
        util_bandwidth: Realized fraction of peak memory bandwidth
        peak_tflops: Optional hardware peak dense TFLOPS
        peak_tops: Optional hardware peak integer TOPS
        mem_bandwidth_gbps: Optional hardware memory bandwidth in GB/s
        vram_available_gb: Optional hardware memory capacity in GB
    """

    params_b: float
    active_params_b: Optional[float] = None
    weight_precision: Precision = Precision.BF16
    kv_precision: Precision = Precision.BF16
    layers: Optional[int] = None
    hidden_size: Optional[int] = None
    heads: Optional[int] = None
    prompt_tokens: int = 0
    new_tokens: int = 0
    batch_size: int = 1
    target_tps: float = 1.0
    ttft_budget_ms: float = 1000.0
    util_compute: float = 0.4
    util_bandwidth: float = 0.6
    peak_tflops: Optional[float] = None
    peak_tops: Optional[float] = None
    mem_bandwidth_gbps: Optional[float] = None
    vram_available_gb: Optional[float] = None

    def __post_init__(self):
        """Normalize field types and reject contract violations."""
        object.__setattr__(
            self, "weight_precision", Precision.parse(self.weight_precision, "weight_precision")
        )
        object.__setattr__(self, "kv_precision", Precision.parse(self.kv_precision, "kv_precision"))

        params_b = _as_float("params_b", self.params_b)
        if params_b <= 0:
            raise InvalidWorkloadError("params_b", f"must be > 0, got {self.params_b!r}")
        object.__setattr__(self, "params_b", params_b)

        if self.active_params_b is None:
            object.__setattr__(self, "active_params_b", params_b)
        else:
            active = _as_float("active_params_b", self.active_params_b)
            if active <= 0 or active > params_b:
                raise InvalidWorkloadError(
                    "active_params_b",
                    f"must be in (0, params_b={params_b}], got {self.active_params_b!r}",
                )
            object.__setattr__(self, "active_params_b", active)

        for name in ("layers", "hidden_size", "heads"):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, _as_count(name, value, minimum=1))

        for name, minimum in (("prompt_tokens", 0), ("new_tokens", 0), ("batch_size", 1)):
            object.__setattr__(self, name, _as_count(name, getattr(self, name), minimum=minimum))

        for name in ("target_tps", "ttft_budget_ms"):
            value = _as_float(name, getattr(self, name))
            if value < 0:
                raise InvalidWorkloadError(name, f"must be >= 0, got {value!r}")
            object.__setattr__(self, name, value)

        for name in ("util_compute", "util_bandwidth"):
            value = _as_float(name, getattr(self, name))
            if not 0 < value <= 1:
                raise InvalidWorkloadError(name, f"must be in (0, 1], got {value!r}")
            object.__setattr__(self, name, value)

        for name in ("peak_tflops", "peak_tops", "mem_bandwidth_gbps", "vram_available_gb"):
            value = getattr(self, name)
            if value is None:
                continue
            value = _as_float(name, value)
            if value < 0:
                raise InvalidWorkloadError(name, f"must be >= 0, got {value!r}")
            object.__setattr__(self, name, value)

    @classmethod
    def from_inputs(cls, inputs: Mapping[str, Any]) -> "WorkloadSpec":
        """Build a spec from loosely-typed form or JSON values.

        Missing, empty, unparseable and non-finite numbers are treated as
        absent. Absent or zero values fall back to the field defaults, and
        zero hardware figures mean "unknown". Counts are passed through
        untruncated, so a fractional count fails validation. A missing
        params_b still fails validation.

        Besides the WorkloadSpec fields, *inputs* may carry ``num_experts``
        and ``top_k`` for mixture-of-experts models; when active_params_b is
        absent they set it to ``params_b / num_experts * top_k``.

        Args:
            inputs: Mapping keyed by WorkloadSpec field names

        Returns:
            A validated WorkloadSpec

        Raises:
            InvalidWorkloadError: If the resulting spec violates the contract
        """
        params_b = _read_number(inputs, "params_b")
        hints = {}
        for name in ("layers", "hidden_size", "heads"):
            hints[name] = _read_number(inputs, name) or None

        active_params_b = _read_number(inputs, "active_params_b") or None
        num_experts = _read_number(inputs, "num_experts")
        if active_params_b is None and num_experts and params_b is not None and params_b > 0:
            top_k = _read_number(inputs, "top_k")
            active_params_b = _moe_active_params(params_b, num_experts, top_k)

        return cls(
            params_b=params_b if params_b is not None else 0.0,
            active_params_b=active_params_b,
            weight_precision=inputs.get("weight_precision") or Precision.BF16,
            kv_precision=inputs.get("kv_precision") or Precision.BF16,
            prompt_tokens=_read_number(inputs, "prompt_tokens") or 0,
            new_tokens=_read_number(inputs, "new_tokens") or 0,
            batch_size=_read_number(inputs, "batch_size") or 1,
            target_tps=_read_number(inputs, "target_tps") or 1.0,
            ttft_budget_ms=_read_number(inputs, "ttft_budget_ms") or 1000.0,
            util_compute=_read_number(inputs, "util_compute") or 0.4,
            util_bandwidth=_read_number(inputs, "util_bandwidth") or 0.6,
            peak_tflops=_read_number(inputs, "peak_tflops") or None,
            peak_tops=_read_number(inputs, "peak_tops") or None,
            mem_bandwidth_gbps=_read_number(inputs, "mem_bandwidth_gbps") or None,
            vram_available_gb=_read_number(inputs, "vram_available_gb") or None,
            **hints,
        )


def _moe_active_params(params_b: float, num_experts: float, top_k: Optional[float]) -> float:
    from .shape import estimate_active_params  # shape imports this module

    experts = _as_count("num_experts", num_experts, minimum=1)
    routed = _as_count("top_k", top_k, minimum=1) if top_k else 1
    if routed > experts:
        raise InvalidWorkloadError("top_k", f"must be <= num_experts={experts}, got {top_k!r}")
    return estimate_active_params(params_b, experts, routed)


@dataclass(frozen=True)
class ResolvedShape:
    """Fully populated transformer dimensions."""

    layers: int
    hidden_size: int
    heads: int
    head_dim: int


@dataclass(frozen=True)
class RequirementsResult:
    """Resource requirements for a workload.

    Byte, FLOP and bandwidth figures are plain floats. The hardware-dependent
    fields (effective_tflops, effective_bw_gbps, ttft_ms and the *_ok flags)
    are None when the corresponding hardware figure was not supplied; None
    means "unknown", never zero or False.
    """

    # Inputs echoed back
    params_b: float
    active_params_b: float
    weight_precision: Precision
    kv_precision: Precision
    prompt_tokens: int
    new_tokens: int
    batch_size: int
    target_tps: float
    ttft_budget_ms: float
    total_seq: int

    # Resolved shape
    layers: int
    hidden_size: int
    heads: int
    head_dim: int

    # Memory
    weight_bytes: float
    kv_bytes: float
    weight_bytes_total: float
    kv_bytes_per_token: float
    kv_cache_bytes: float
    workspace_bytes: float
    total_vram_gb: float

    # Compute
    prefill_flops: float
    attn_prefill_flops: float
    total_prefill_flops: float
    avg_decode_seq: float
    decode_flops_per_token: float
    required_tflops: float

    # Bandwidth
    weight_read_bytes_per_token: float
    kv_read_bytes_per_token: float
    kv_write_bytes_per_token: float
    amortized_bytes_per_token: float
    amortized_bytes_per_token_optimistic: float
    required_bw_gbps_conservative: float
    required_bw_gbps_optimistic: float

    # Hardware-dependent
    effective_tflops: Optional[float] = None
    effective_bw_gbps: Optional[float] = None
    ttft_ms: Optional[float] = None
    compute_ok: Optional[bool] = None
    bandwidth_ok: Optional[bool] = None
    vram_ok: Optional[bool] = None
    ttft_ok: Optional[bool] = None

    @property
    def required_bw_gbps(self) -> float:
        """Bandwidth requirement used for hardware matching (conservative)."""
        return self.required_bw_gbps_conservative

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = asdict(self)
        result["weight_precision"] = self.weight_precision.value
        result["kv_precision"] = self.kv_precision.value
        result["required_bw_gbps"] = self.required_bw_gbps
        return result


@dataclass(frozen=True)
class AcceleratorSpec:
    """Represents accelerator hardware specifications.

    Attributes:
        id: Stable catalog identifier (e.g. "h100-80gb")
        name: Display name
        category: One of consumer, professional, apple, datacenter
        vram_gb: Device memory in GB
        tflops_fp32: Peak FP32 TFLOPS
        tflops_fp16: Peak FP16 TFLOPS
        tflops_bf16: Peak BF16 TFLOPS (optional, falls back to FP16)
        tops_int8: Peak INT8 TOPS (optional)
        tops_int4: Peak INT4 TOPS (optional, falls back to 2x INT8)
        bandwidth_gbps: Memory bandwidth in GB/s
        price_usd: Purchase price per device (optional)
        cloud_hourly: Cloud rental price per device-hour (optional)
        notes: Short free-text description
        popular: Whether the entry is offered as a quick pick
    """

    id: str
    name: str
    category: str
    vram_gb: float
    tflops_fp32: float
    tflops_fp16: float
    bandwidth_gbps: float
    tflops_bf16: Optional[float] = None
    tops_int8: Optional[float] = None
    tops_int4: Optional[float] = None
    price_usd: Optional[float] = None
    cloud_hourly: Optional[float] = None
    notes: str = ""
    popular: bool = False

    def __post_init__(self):
        """Reject entries that would produce negative or infinite device counts."""
        if not self.id:
            raise InvalidAcceleratorError(repr(self.id), "id must not be empty")
        if self.category not in ACCELERATOR_CATEGORIES:
            raise InvalidAcceleratorError(
                self.id,
                f"unknown category {self.category!r} "
                f"(expected one of: {', '.join(ACCELERATOR_CATEGORIES)})",
            )
        for name in ("vram_gb", "bandwidth_gbps"):
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or not math.isfinite(value) or value <= 0:
                raise InvalidAcceleratorError(self.id, f"{name} must be > 0, got {value!r}")
        for name in (
            "tflops_fp32",
            "tflops_fp16",
            "tflops_bf16",
            "tops_int8",
            "tops_int4",
            "price_usd",
            "cloud_hourly",
        ):
            value = getattr(self, name)
            if value is None:
                continue
            if not isinstance(value, (int, float)) or not math.isfinite(value) or value < 0:
                raise InvalidAcceleratorError(self.id, f"{name} must be >= 0, got {value!r}")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Recommendation:
    """A catalog entry paired with the device count that satisfies a workload.

    Attributes:
        accelerator: The catalog entry
        count: Number of devices in the configuration
        throughput_tflops: Per-device throughput at the workload's weight precision
        effective_tflops: Aggregate throughput (throughput_tflops * count)
        total_vram_gb: Aggregate memory
        total_bandwidth_gbps: Aggregate memory bandwidth
        vram_headroom_gb: Memory left over after the requirement
        compute_headroom_tflops: Throughput left over after the requirement
        bandwidth_headroom_gbps: Bandwidth left over after the requirement
        total_cost_usd: Purchase price for all devices (None when unpriced)
    """

    accelerator: AcceleratorSpec
    count: int
    throughput_tflops: float
    effective_tflops: float
    total_vram_gb: float
    total_bandwidth_gbps: float
    vram_headroom_gb: float
    compute_headroom_tflops: float
    bandwidth_headroom_gbps: float
    total_cost_usd: Optional[float] = None

    @property
    def id(self) -> str:
        return self.accelerator.id

    @property
    def name(self) -> str:
        return self.accelerator.name

    @property
    def category(self) -> str:
        return self.accelerator.category

    def to_dict(self) -> Dict[str, Any]:
        """Flatten the accelerator fields and the configuration fields into one dict."""
        result = self.accelerator.to_dict()
        result.update(
            {
                "count": self.count,
                "throughput_tflops": self.throughput_tflops,
                "effective_tflops": self.effective_tflops,
                "total_vram_gb": self.total_vram_gb,
                "total_bandwidth_gbps": self.total_bandwidth_gbps,
                "vram_headroom_gb": self.vram_headroom_gb,
                "compute_headroom_tflops": self.compute_headroom_tflops,
                "bandwidth_headroom_gbps": self.bandwidth_headroom_gbps,
                "total_cost_usd": self.total_cost_usd,
            }
        )
        return result
