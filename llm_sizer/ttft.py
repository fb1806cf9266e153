"""Time-to-first-token curves for charting.

A simpler model than RequirementEstimator: prefill is taken as the dense
``2 * prompt_length * params`` FLOPs only, with no attention term, no
utilization factor and no fixed overhead. Good enough for showing how TTFT
falls as hardware throughput rises.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import pandas as pd

DEFAULT_PROMPT_LENGTHS = (2048, 4096, 8192)


@dataclass(frozen=True)
class TTFTThreshold:
    """A labelled TTFT level in seconds, with its display color."""

    value: float
    label: str
    color: str


TTFT_THRESHOLDS = (
    TTFTThreshold(1, "Instant", "#4ade80"),
    TTFTThreshold(3, "Acceptable", "#fbbf24"),
    TTFTThreshold(10, "Baseline", "#f87171"),
)


def _prefill_flops(params_b: float, prompt_length: int) -> float:
    return 2 * prompt_length * params_b * 1e9


def calculate_ttft(params_b: float, prompt_length: int, hardware_tflops: Optional[float]) -> Optional[float]:
    """TTFT in seconds, or None when the hardware throughput is unknown."""
    if not hardware_tflops or hardware_tflops <= 0:
        return None
    return _prefill_flops(params_b, prompt_length) / (hardware_tflops * 1e12)


def required_tflops_for_ttft(params_b: float, prompt_length: int, target_ttft_s: Optional[float]) -> Optional[float]:
    """TFLOPS needed to reach *target_ttft_s*, or None when no target is set."""
    if not target_ttft_s or target_ttft_s <= 0:
        return None
    return _prefill_flops(params_b, prompt_length) / (target_ttft_s * 1e12)


@dataclass
class TTFTCurves:
    """TTFT against hardware throughput, one curve per prompt length.

    Attributes:
        params_b: Model size the curves were computed for
        prompt_lengths: Prompt lengths in curve order
        curves: prompt length -> list of (tflops, ttft_seconds) points
        min_tflops: Lower end of the throughput axis
        max_tflops: Upper end of the throughput axis
    """

    params_b: float
    prompt_lengths: List[int]
    curves: Dict[int, List[tuple]]
    min_tflops: float
    max_tflops: float


def generate_ttft_curves(
    params_b: float,
    prompt_lengths: Sequence[int] = DEFAULT_PROMPT_LENGTHS,
    min_tflops: float = 50,
    max_tflops: float = 2000,
    points: int = 50,
) -> TTFTCurves:
    """Sample TTFT at log-spaced throughputs between *min_tflops* and *max_tflops*.

    Args:
        params_b: Model parameters in billions
        prompt_lengths: One curve per prompt length
        min_tflops: Smallest throughput sampled (must be > 0)
        max_tflops: Largest throughput sampled
        points: Samples per curve (at least 2)

    Returns:
        TTFTCurves
    """
    if min_tflops <= 0 or max_tflops < min_tflops:
        raise ValueError(f"invalid throughput range [{min_tflops}, {max_tflops}]")
    if points < 2:
        raise ValueError(f"points must be >= 2, got {points}")

    curves = {}
    for prompt_length in prompt_lengths:
        samples = []
        for i in range(points):
            t = i / (points - 1)
            tflops = min_tflops * (max_tflops / min_tflops) ** t
            samples.append((tflops, calculate_ttft(params_b, prompt_length, tflops)))
        curves[prompt_length] = samples

    return TTFTCurves(
        params_b=params_b,
        prompt_lengths=list(prompt_lengths),
        curves=curves,
        min_tflops=min_tflops,
        max_tflops=max_tflops,
    )


def curves_to_dataframe(curves: TTFTCurves) -> pd.DataFrame:
    """Wide table indexed by TFLOPS with one TTFT column per prompt length."""
    frames = []
    for prompt_length in curves.prompt_lengths:
        points = curves.curves[prompt_length]
        frames.append(
            pd.Series(
                [ttft for _, ttft in points],
                index=pd.Index([tflops for tflops, _ in points], name="TFLOPS"),
                name=f"{prompt_length} tokens",
            )
        )
    return pd.concat(frames, axis=1)


def format_ttft(ttft_seconds: Optional[float]) -> str:
    if not ttft_seconds or ttft_seconds < 0:
        return "N/A"
    if ttft_seconds < 1:
        return f"{ttft_seconds * 1000:.0f}ms"
    if ttft_seconds < 60:
        return f"{ttft_seconds:.1f}s"
    return f"{ttft_seconds / 60:.1f}min"


def format_flops(tflops: Optional[float]) -> str:
    if not tflops or tflops < 0:
        return "N/A"
    if tflops >= 1000:
        return f"{tflops / 1000:.1f} PFLOPs"
    return f"{round(tflops)} TFLOPs"
