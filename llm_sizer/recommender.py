"""Hardware recommendation engine.

Matches a RequirementsResult against an accelerator catalog, either as a
single device that clears every requirement on its own or as the smallest
group of identical devices that does, and ranks the candidates cheapest first.
"""

import logging
import math
from dataclasses import dataclass, field
from functools import cmp_to_key
from typing import Any, Callable, Dict, Iterable, List, Optional

import pandas as pd

from .gpu_library import ACCELERATOR_LIBRARY
from .models import AcceleratorSpec, Precision, Recommendation, RequirementsResult

logger = logging.getLogger(__name__)

# Largest multi-device configuration worth recommending (one 8-GPU node)
MAX_DEVICES = 8

# Entries kept per category in the categorized bundle
TOP_PER_CATEGORY = 3

# Length of the single- and multi-device shortlists the bundle draws from
SHORTLIST_SIZE = 5

# Multi-device configurations appended to the combined list
MULTI_IN_COMBINED = 2

HOURS_PER_MONTH = 730

DATAFRAME_COLUMNS = [
    "GPU",
    "Category",
    "Count",
    "VRAM (GB)",
    "Compute (TFLOPS)",
    "Bandwidth (GB/s)",
    "VRAM Headroom (GB)",
    "Total Price (USD)",
    "Cloud ($/hr)",
]


def _int8_throughput(gpu: AcceleratorSpec) -> float:
    if gpu.tops_int8 is None:
        return gpu.tflops_fp16
    return gpu.tops_int8 / 1000


def _int4_throughput(gpu: AcceleratorSpec) -> float:
    if gpu.tops_int4:
        return gpu.tops_int4 / 1000
    if gpu.tops_int8 is not None:
        return gpu.tops_int8 * 2 / 1000
    return gpu.tflops_fp16


# Per-device throughput in TFLOPS(-equivalent) for each weight precision.
# Integer TOPS are divided by 1000 to put them on the same axis as the
# required TFLOPS; FP8 is counted at the FP16 rate.
THROUGHPUT_BY_PRECISION: Dict[Precision, Callable[[AcceleratorSpec], float]] = {
    Precision.INT8: _int8_throughput,
    Precision.INT4: _int4_throughput,
    Precision.FP8: lambda gpu: gpu.tflops_fp16,
    Precision.BF16: lambda gpu: gpu.tflops_bf16 or gpu.tflops_fp16,
    Precision.FP16: lambda gpu: gpu.tflops_fp16,
}


def device_throughput(gpu: AcceleratorSpec, precision: Precision) -> float:
    """Throughput of one device at the given weight precision."""
    return THROUGHPUT_BY_PRECISION[precision](gpu)


def _devices_for(required: float, per_device: float) -> Optional[int]:
    """Devices needed to cover *required*; None when no count can."""
    if required <= 0:
        return 0
    if per_device <= 0:
        return None
    return math.ceil(required / per_device)


def _build_recommendation(
    gpu: AcceleratorSpec, count: int, throughput: float, requirements: RequirementsResult
) -> Recommendation:
    total_vram_gb = gpu.vram_gb * count
    effective_tflops = throughput * count
    total_bandwidth_gbps = gpu.bandwidth_gbps * count
    return Recommendation(
        accelerator=gpu,
        count=count,
        throughput_tflops=throughput,
        effective_tflops=effective_tflops,
        total_vram_gb=total_vram_gb,
        total_bandwidth_gbps=total_bandwidth_gbps,
        vram_headroom_gb=total_vram_gb - requirements.total_vram_gb,
        compute_headroom_tflops=effective_tflops - requirements.required_tflops,
        bandwidth_headroom_gbps=total_bandwidth_gbps - requirements.required_bw_gbps,
        total_cost_usd=gpu.price_usd * count if gpu.price_usd else None,
    )


def _compare_recommendations(a: Recommendation, b: Recommendation) -> int:
    """Cheapest total first when both are priced; else fewer devices, then faster."""
    price_a = a.accelerator.price_usd
    price_b = b.accelerator.price_usd
    if price_a and price_b:
        cost_a = price_a * a.count
        cost_b = price_b * b.count
        return (cost_a > cost_b) - (cost_a < cost_b)
    if a.count != b.count:
        return a.count - b.count
    return (b.effective_tflops > a.effective_tflops) - (b.effective_tflops < a.effective_tflops)


def rank_recommendations(recommendations: Iterable[Recommendation]) -> List[Recommendation]:
    return sorted(recommendations, key=cmp_to_key(_compare_recommendations))


def find_suitable(
    requirements: RequirementsResult,
    catalog: Iterable[AcceleratorSpec],
    single_device: bool = True,
    max_devices: int = MAX_DEVICES,
) -> List[Recommendation]:
    """Find catalog entries that can serve the workload.

    In single-device mode an entry qualifies only if its memory, throughput
    and bandwidth each cover the requirement on their own. In multi-device
    mode each entry gets the smallest count that covers all three, and
    entries needing more than *max_devices* are dropped.

    Args:
        requirements: Output of RequirementEstimator.estimate
        catalog: Accelerator entries to consider
        single_device: Search single devices (True) or device groups (False)
        max_devices: Upper bound on the device count in multi-device mode

    Returns:
        Ranked list of Recommendation (possibly empty)
    """
    precision = requirements.weight_precision
    required_vram = requirements.total_vram_gb
    required_tflops = requirements.required_tflops
    required_bw = requirements.required_bw_gbps

    suitable = []
    for gpu in catalog:
        throughput = device_throughput(gpu, precision)

        if single_device:
            if (
                gpu.vram_gb >= required_vram
                and throughput >= required_tflops
                and gpu.bandwidth_gbps >= required_bw
            ):
                suitable.append(_build_recommendation(gpu, 1, throughput, requirements))
            continue

        for_compute = _devices_for(required_tflops, throughput)
        if for_compute is None:
            continue
        count = max(
            math.ceil(required_vram / gpu.vram_gb),
            for_compute,
            math.ceil(required_bw / gpu.bandwidth_gbps),
            1,
        )
        if count <= max_devices:
            suitable.append(_build_recommendation(gpu, count, throughput, requirements))

    logger.debug(
        "%d suitable %s configurations",
        len(suitable),
        "single-device" if single_device else "multi-device",
    )
    return rank_recommendations(suitable)


@dataclass
class HardwareRecommendations:
    """Recommendations grouped by the kind of buyer.

    Attributes:
        consumer: Single consumer cards
        professional: Single workstation cards and Apple silicon machines
        datacenter: Single datacenter accelerators followed by multi-device groups
        all: Single-device shortlist followed by the best multi-device groups
    """

    consumer: List[Recommendation] = field(default_factory=list)
    professional: List[Recommendation] = field(default_factory=list)
    datacenter: List[Recommendation] = field(default_factory=list)
    all: List[Recommendation] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """True when nothing in the catalog fits (a valid "no fit" answer)."""
        return not (self.consumer or self.professional or self.datacenter or self.all)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "consumer": [rec.to_dict() for rec in self.consumer],
            "professional": [rec.to_dict() for rec in self.professional],
            "datacenter": [rec.to_dict() for rec in self.datacenter],
            "all": [rec.to_dict() for rec in self.all],
        }


class HardwareMatcher:
    """Recommends accelerator configurations for estimated requirements.

    The catalog is injected and copied into a tuple; the matcher never
    modifies it.
    """

    def __init__(
        self,
        catalog: Iterable[AcceleratorSpec] = ACCELERATOR_LIBRARY,
        max_devices: int = MAX_DEVICES,
        top_per_category: int = TOP_PER_CATEGORY,
        shortlist_size: int = SHORTLIST_SIZE,
        multi_in_combined: int = MULTI_IN_COMBINED,
    ):
        """Initialize the matcher.

        Args:
            catalog: Accelerator entries to search (defaults to the preloaded library)
            max_devices: Upper bound on multi-device configurations
            top_per_category: Entries kept per category in recommend()
            shortlist_size: Length of the single/multi shortlists in recommend()
            multi_in_combined: Multi-device entries appended to the combined list
        """
        self.catalog = tuple(catalog)
        self.max_devices = max_devices
        self.top_per_category = top_per_category
        self.shortlist_size = shortlist_size
        self.multi_in_combined = multi_in_combined

    def find_suitable(
        self, requirements: RequirementsResult, single_device: bool = True
    ) -> List[Recommendation]:
        return find_suitable(
            requirements, self.catalog, single_device=single_device, max_devices=self.max_devices
        )

    def recommend(self, requirements: RequirementsResult) -> HardwareRecommendations:
        """Build the categorized recommendation bundle.

        Args:
            requirements: Output of RequirementEstimator.estimate

        Returns:
            HardwareRecommendations; every list may be empty
        """
        single = self.find_suitable(requirements, single_device=True)[: self.shortlist_size]
        multi = self.find_suitable(requirements, single_device=False)[: self.shortlist_size]
        # A device that fits alone also shows up in the multi-device search with count 1
        seen = {(rec.id, rec.count) for rec in single}
        multi = [rec for rec in multi if (rec.id, rec.count) not in seen]

        consumer = [rec for rec in single if rec.category == "consumer"]
        professional = [rec for rec in single if rec.category in ("professional", "apple")]
        datacenter = [rec for rec in single + multi if rec.category == "datacenter"]

        result = HardwareRecommendations(
            consumer=consumer[: self.top_per_category],
            professional=professional[: self.top_per_category],
            datacenter=datacenter[: self.top_per_category],
            all=single + multi[: self.multi_in_combined],
        )
        if result.is_empty:
            logger.info(
                "No configuration fits %.1f GB / %.1f TFLOPS / %.1f GB/s",
                requirements.total_vram_gb,
                requirements.required_tflops,
                requirements.required_bw_gbps,
            )
        return result


def format_recommendation(recommendation: Recommendation) -> str:
    """Format a recommendation name with its device count, e.g. "2× NVIDIA L40S"."""
    if recommendation.count > 1:
        return f"{recommendation.count}× {recommendation.name}"
    return recommendation.name


@dataclass(frozen=True)
class CloudCost:
    """Cloud rental cost of a configuration in USD."""

    hourly: float
    monthly: float
    yearly: float


def estimate_cloud_cost(
    recommendation: Recommendation, hours_per_month: float = HOURS_PER_MONTH
) -> Optional[CloudCost]:
    """Estimate rental cost for all devices; None when the entry has no cloud price."""
    cloud_hourly = recommendation.accelerator.cloud_hourly
    if not cloud_hourly:
        return None
    hourly = cloud_hourly * recommendation.count
    monthly = hourly * hours_per_month
    return CloudCost(hourly=hourly, monthly=monthly, yearly=monthly * 12)


def recommendations_to_dataframe(recommendations: Iterable[Recommendation]) -> pd.DataFrame:
    """Tabulate recommendations for display or CSV export."""
    rows = []
    for rec in recommendations:
        cloud = estimate_cloud_cost(rec)
        rows.append(
            {
                "GPU": format_recommendation(rec),
                "Category": rec.category,
                "Count": rec.count,
                "VRAM (GB)": rec.total_vram_gb,
                "Compute (TFLOPS)": rec.effective_tflops,
                "Bandwidth (GB/s)": rec.total_bandwidth_gbps,
                "VRAM Headroom (GB)": rec.vram_headroom_gb,
                "Total Price (USD)": rec.total_cost_usd,
                "Cloud ($/hr)": cloud.hourly if cloud else None,
            }
        )
    return pd.DataFrame(rows, columns=DATAFRAME_COLUMNS)
