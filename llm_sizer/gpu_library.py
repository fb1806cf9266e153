"""Preloaded accelerator catalog and catalog helpers.

The library is an immutable tuple. Callers that need extra hardware build a
new list (``list(ACCELERATOR_LIBRARY) + custom``) and pass it to the matcher.
"""

import json
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .models import AcceleratorSpec

ACCELERATOR_LIBRARY = (
    # Consumer
    AcceleratorSpec(
        id="rtx-4090",
        name="NVIDIA RTX 4090",
        category="consumer",
        vram_gb=24,
        tflops_fp32=82.6,
        tflops_fp16=165.2,
        tflops_bf16=165.2,
        tops_int8=660,
        bandwidth_gbps=1008,
        price_usd=1599,
        notes="Best consumer GPU for LLM inference",
        popular=True,
    ),
    AcceleratorSpec(
        id="rtx-4080",
        name="NVIDIA RTX 4080",
        category="consumer",
        vram_gb=16,
        tflops_fp32=48.7,
        tflops_fp16=97.4,
        tflops_bf16=97.4,
        tops_int8=389,
        bandwidth_gbps=716,
        price_usd=1199,
        notes="Strong mid-range option",
        popular=True,
    ),
    AcceleratorSpec(
        id="rtx-3090",
        name="NVIDIA RTX 3090",
        category="consumer",
        vram_gb=24,
        tflops_fp32=35.6,
        tflops_fp16=71.2,
        tflops_bf16=35.6,
        tops_int8=142,
        bandwidth_gbps=936,
        price_usd=699,
        notes="Previous gen, still viable for inference",
        popular=True,
    ),
    AcceleratorSpec(
        id="rtx-3080",
        name="NVIDIA RTX 3080",
        category="consumer",
        vram_gb=10,
        tflops_fp32=29.8,
        tflops_fp16=59.6,
        tflops_bf16=29.8,
        tops_int8=119,
        bandwidth_gbps=760,
        price_usd=499,
        notes="Budget option for small models",
    ),
    AcceleratorSpec(
        id="rx-7900-xtx",
        name="AMD Radeon RX 7900 XTX",
        category="consumer",
        vram_gb=24,
        tflops_fp32=61,
        tflops_fp16=122,
        tflops_bf16=61,
        tops_int8=244,
        bandwidth_gbps=960,
        price_usd=999,
        notes="AMD consumer alternative to RTX 4090",
    ),
    # Datacenter
    AcceleratorSpec(
        id="a100-80gb",
        name="NVIDIA A100 80GB",
        category="datacenter",
        vram_gb=80,
        tflops_fp32=19.5,
        tflops_fp16=312,
        tflops_bf16=312,
        tops_int8=624,
        bandwidth_gbps=2039,
        price_usd=15000,
        cloud_hourly=4.10,
        notes="Industry standard datacenter GPU",
        popular=True,
    ),
    AcceleratorSpec(
        id="a100-40gb",
        name="NVIDIA A100 40GB",
        category="datacenter",
        vram_gb=40,
        tflops_fp32=19.5,
        tflops_fp16=312,
        tflops_bf16=312,
        tops_int8=624,
        bandwidth_gbps=1555,
        price_usd=11000,
        cloud_hourly=2.88,
        notes="More affordable A100 variant",
    ),
    AcceleratorSpec(
        id="h100-80gb",
        name="NVIDIA H100 80GB",
        category="datacenter",
        vram_gb=80,
        tflops_fp32=51,
        tflops_fp16=989,
        tflops_bf16=989,
        tops_int8=1979,
        bandwidth_gbps=3350,
        price_usd=30000,
        cloud_hourly=8.50,
        notes="Latest datacenter GPU, highest performance",
        popular=True,
    ),
    AcceleratorSpec(
        id="h100-sxm5-80gb",
        name="NVIDIA H100 SXM5 80GB",
        category="datacenter",
        vram_gb=80,
        tflops_fp32=51,
        tflops_fp16=989,
        tflops_bf16=989,
        tops_int8=1979,
        bandwidth_gbps=3350,
        price_usd=35000,
        cloud_hourly=9.20,
        notes="H100 with NVLink, best for multi-GPU",
    ),
    AcceleratorSpec(
        id="l40s",
        name="NVIDIA L40S",
        category="datacenter",
        vram_gb=48,
        tflops_fp32=91.6,
        tflops_fp16=183.2,
        tflops_bf16=183.2,
        tops_int8=733,
        bandwidth_gbps=864,
        price_usd=8000,
        cloud_hourly=3.20,
        notes="Balanced price/performance for inference",
        popular=True,
    ),
    AcceleratorSpec(
        id="l4",
        name="NVIDIA L4",
        category="datacenter",
        vram_gb=24,
        tflops_fp32=30.3,
        tflops_fp16=121,
        tflops_bf16=60.6,
        tops_int8=242,
        bandwidth_gbps=300,
        price_usd=4000,
        cloud_hourly=1.45,
        notes="Cost-effective inference GPU",
    ),
    AcceleratorSpec(
        id="v100-32gb",
        name="NVIDIA V100 32GB",
        category="datacenter",
        vram_gb=32,
        tflops_fp32=15.7,
        tflops_fp16=125,
        tflops_bf16=62.5,
        tops_int8=250,
        bandwidth_gbps=900,
        price_usd=6000,
        cloud_hourly=2.48,
        notes="Older generation, still available in cloud",
    ),
    AcceleratorSpec(
        id="mi250x",
        name="AMD Instinct MI250X",
        category="datacenter",
        vram_gb=128,
        tflops_fp32=47.9,
        tflops_fp16=383,
        tflops_bf16=383,
        tops_int8=766,
        bandwidth_gbps=3277,
        price_usd=12000,
        notes="AMD datacenter alternative",
    ),
    AcceleratorSpec(
        id="mi300x",
        name="AMD Instinct MI300X",
        category="datacenter",
        vram_gb=192,
        tflops_fp32=163,
        tflops_fp16=1307,
        tflops_bf16=1307,
        tops_int8=2614,
        bandwidth_gbps=5300,
        price_usd=15000,
        cloud_hourly=10.50,
        notes="Latest AMD GPU, highest VRAM",
        popular=True,
    ),
    # Professional workstation
    AcceleratorSpec(
        id="a6000",
        name="NVIDIA RTX A6000",
        category="professional",
        vram_gb=48,
        tflops_fp32=38.7,
        tflops_fp16=77.4,
        tflops_bf16=77.4,
        tops_int8=309,
        bandwidth_gbps=768,
        price_usd=4500,
        notes="Workstation GPU with large VRAM",
        popular=True,
    ),
    AcceleratorSpec(
        id="a5000",
        name="NVIDIA RTX A5000",
        category="professional",
        vram_gb=24,
        tflops_fp32=27.8,
        tflops_fp16=55.6,
        tflops_bf16=55.6,
        tops_int8=222,
        bandwidth_gbps=768,
        price_usd=2500,
        notes="Mid-range workstation option",
    ),
    # Apple silicon (unified memory)
    AcceleratorSpec(
        id="mac-m2-ultra-192gb",
        name="Mac Studio M2 Ultra (192GB)",
        category="apple",
        vram_gb=192,
        tflops_fp32=27.2,
        tflops_fp16=54.4,
        tflops_bf16=54.4,
        tops_int8=109,
        bandwidth_gbps=800,
        price_usd=6499,
        notes="Unified memory, excellent for large context",
        popular=True,
    ),
    AcceleratorSpec(
        id="mac-m2-ultra-128gb",
        name="Mac Studio M2 Ultra (128GB)",
        category="apple",
        vram_gb=128,
        tflops_fp32=27.2,
        tflops_fp16=54.4,
        tflops_bf16=54.4,
        tops_int8=109,
        bandwidth_gbps=800,
        price_usd=5799,
        notes="Unified memory, good for 70B models",
        popular=True,
    ),
    AcceleratorSpec(
        id="mac-m3-max-128gb",
        name="MacBook Pro M3 Max (128GB)",
        category="apple",
        vram_gb=128,
        tflops_fp32=14.2,
        tflops_fp16=28.4,
        tflops_bf16=28.4,
        tops_int8=57,
        bandwidth_gbps=400,
        price_usd=4499,
        notes="Portable option with unified memory",
    ),
    AcceleratorSpec(
        id="mac-m3-max-96gb",
        name="MacBook Pro M3 Max (96GB)",
        category="apple",
        vram_gb=96,
        tflops_fp32=14.2,
        tflops_fp16=28.4,
        tflops_bf16=28.4,
        tops_int8=57,
        bandwidth_gbps=400,
        price_usd=3999,
        notes="Portable, good for smaller models",
    ),
)

_LIBRARY_BY_ID = {gpu.id: gpu for gpu in ACCELERATOR_LIBRARY}


def list_available_gpus() -> List[str]:
    """List the ids of every accelerator in the preloaded library."""
    return [gpu.id for gpu in ACCELERATOR_LIBRARY]


def get_gpu_from_library(gpu_id: str) -> Optional[AcceleratorSpec]:
    """Look up a library entry by id (case-insensitive); None if unknown."""
    return _LIBRARY_BY_ID.get(gpu_id.strip().lower())


def get_gpu_specs(gpu_ids: Optional[Sequence[str]] = None) -> List[AcceleratorSpec]:
    """Get library entries by id, or the whole library when no ids are given.

    Args:
        gpu_ids: Ids to select, in the order they should be returned

    Returns:
        List of AcceleratorSpec

    Raises:
        ValueError: If any id is not in the library
    """
    if gpu_ids is None:
        return list(ACCELERATOR_LIBRARY)

    gpus = []
    for gpu_id in gpu_ids:
        gpu = get_gpu_from_library(gpu_id)
        if gpu is None:
            raise ValueError(
                f"GPU '{gpu_id}' not found in library. "
                f"Available GPUs: {', '.join(list_available_gpus())}"
            )
        gpus.append(gpu)
    return gpus


def create_custom_gpu(
    gpu_id: str,
    name: str,
    vram_gb: float,
    bandwidth_gbps: float,
    tflops_fp16: float,
    tflops_fp32: float = 0.0,
    category: str = "datacenter",
    **optional_fields: Any,
) -> AcceleratorSpec:
    """Create an accelerator entry that is not in the library.

    Args:
        gpu_id: Catalog identifier
        name: Display name
        vram_gb: Device memory in GB
        bandwidth_gbps: Memory bandwidth in GB/s
        tflops_fp16: Peak FP16 TFLOPS
        tflops_fp32: Peak FP32 TFLOPS
        category: Catalog category (default: datacenter)
        **optional_fields: Any optional AcceleratorSpec field
            (tflops_bf16, tops_int8, tops_int4, price_usd, cloud_hourly, notes, popular)

    Returns:
        A validated AcceleratorSpec
    """
    return AcceleratorSpec(
        id=gpu_id,
        name=name,
        category=category,
        vram_gb=vram_gb,
        tflops_fp32=tflops_fp32,
        tflops_fp16=tflops_fp16,
        bandwidth_gbps=bandwidth_gbps,
        **optional_fields,
    )


def get_popular_gpus(catalog: Iterable[AcceleratorSpec] = ACCELERATOR_LIBRARY) -> List[AcceleratorSpec]:
    return [gpu for gpu in catalog if gpu.popular]


def get_gpus_by_category(
    category: str, catalog: Iterable[AcceleratorSpec] = ACCELERATOR_LIBRARY
) -> List[AcceleratorSpec]:
    return [gpu for gpu in catalog if gpu.category == category]


def search_gpus(query: str, catalog: Iterable[AcceleratorSpec] = ACCELERATOR_LIBRARY) -> List[AcceleratorSpec]:
    """Find entries whose name, id or notes contain *query* (case-insensitive)."""
    if not query:
        return []
    needle = query.lower()
    return [
        gpu
        for gpu in catalog
        if needle in gpu.name.lower() or needle in gpu.id.lower() or needle in gpu.notes.lower()
    ]


def hardware_inputs(gpu: AcceleratorSpec, count: int = 1) -> Dict[str, float]:
    """Map a catalog entry to the hardware fields of a WorkloadSpec.

    Peaks scale linearly with the device count. The result can be merged into
    the keyword arguments of WorkloadSpec or WorkloadSpec.from_inputs.

    Args:
        gpu: Catalog entry
        count: Number of devices

    Returns:
        Dict with peak_tflops, peak_tops, mem_bandwidth_gbps and vram_available_gb
    """
    if count < 1:
        raise ValueError(f"count must be >= 1, got {count}")
    return {
        "peak_tflops": (gpu.tflops_bf16 or gpu.tflops_fp16 or 0.0) * count,
        "peak_tops": (gpu.tops_int8 or 0.0) * count,
        "mem_bandwidth_gbps": gpu.bandwidth_gbps * count,
        "vram_available_gb": gpu.vram_gb * count,
    }


def load_catalog_from_json(filepath: str) -> List[AcceleratorSpec]:
    """Load accelerator entries from a JSON list of AcceleratorSpec field dicts."""
    with open(filepath, "r") as f:
        data = json.load(f)

    gpus = []
    for gpu_data in data:
        gpus.append(AcceleratorSpec(**gpu_data))
    return gpus
