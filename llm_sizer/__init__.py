"""LLM Sizer - hardware requirement estimation and matching for LLM serving."""

from .errors import InvalidAcceleratorError, InvalidWorkloadError, SizerError
from .estimator import RequirementEstimator, estimate_requirements, fit_status
from .gpu_library import (
    ACCELERATOR_LIBRARY,
    create_custom_gpu,
    get_gpu_from_library,
    get_gpu_specs,
    hardware_inputs,
    list_available_gpus,
)
from .models import (
    AcceleratorSpec,
    Precision,
    Recommendation,
    RequirementsResult,
    ResolvedShape,
    WorkloadSpec,
)
from .recommender import HardwareMatcher, HardwareRecommendations, find_suitable
from .shape import ShapeResolver, resolve_shape

__version__ = "0.1.0"

__all__ = [
    "Precision",
    "WorkloadSpec",
    "ResolvedShape",
    "RequirementsResult",
    "AcceleratorSpec",
    "Recommendation",
    "ShapeResolver",
    "resolve_shape",
    "RequirementEstimator",
    "estimate_requirements",
    "fit_status",
    "HardwareMatcher",
    "HardwareRecommendations",
    "find_suitable",
    "ACCELERATOR_LIBRARY",
    "get_gpu_from_library",
    "list_available_gpus",
    "get_gpu_specs",
    "create_custom_gpu",
    "hardware_inputs",
    "SizerError",
    "InvalidWorkloadError",
    "InvalidAcceleratorError",
]
