"""Tests for Streamlit UI functionality.

These tests validate the core components and data flow of the Streamlit application
without requiring a full browser/UI test environment.
"""

import json
from io import StringIO

import pandas as pd
import pytest

from llm_sizer import HardwareMatcher, RequirementEstimator, WorkloadSpec
from llm_sizer.errors import SizerError
from llm_sizer.estimator import fit_status
from llm_sizer.gpu_library import get_gpu_from_library, hardware_inputs
from llm_sizer.recommender import DATAFRAME_COLUMNS, recommendations_to_dataframe
from llm_sizer.ttft import curves_to_dataframe, generate_ttft_curves


@pytest.fixture
def sidebar_inputs():
    """Widget values as the sidebar submits them by default."""
    return {
        "params_b": 8.0,
        "active_params_b": 0.0,
        "num_experts": 0,
        "top_k": 1,
        "weight_precision": "bf16",
        "kv_precision": "bf16",
        "layers": 0,
        "hidden_size": 0,
        "heads": 0,
        "prompt_tokens": 2048,
        "new_tokens": 512,
        "batch_size": 1,
        "target_tps": 20.0,
        "ttft_budget_ms": 1000.0,
        "util_compute": 0.4,
        "util_bandwidth": 0.6,
    }


def test_sidebar_defaults_build_valid_workload(sidebar_inputs):
    """Zero widgets mean "infer" rather than invalid."""
    spec = WorkloadSpec.from_inputs(sidebar_inputs)

    assert spec.active_params_b == 8.0
    assert spec.layers is None
    assert spec.vram_available_gb is None


def test_expert_widgets_set_active_params(sidebar_inputs):
    """Expert count and top-k apply while active parameters are left at 0."""
    sidebar_inputs.update({"params_b": 47.0, "num_experts": 8, "top_k": 2})

    spec = WorkloadSpec.from_inputs(sidebar_inputs)

    assert spec.active_params_b == pytest.approx(11.75)


def test_gpu_selection_feeds_hardware_fields(sidebar_inputs):
    """Selecting a GPU and count fills the hardware figures."""
    sidebar_inputs.update(hardware_inputs(get_gpu_from_library("rtx-4090"), 2))

    result = RequirementEstimator().estimate(WorkloadSpec.from_inputs(sidebar_inputs))

    assert result.effective_tflops == pytest.approx(165.2 * 2 * 0.4)
    assert result.effective_bw_gbps == pytest.approx(1008 * 2 * 0.6)
    assert result.vram_ok is True
    assert fit_status(result.total_vram_gb, 48) in ("fit", "warn")


def test_no_gpu_leaves_checks_unknown(sidebar_inputs):
    """Without a GPU the fit checks are unknown."""
    result = RequirementEstimator().estimate(WorkloadSpec.from_inputs(sidebar_inputs))

    assert fit_status(result.required_tflops, result.effective_tflops) is None
    assert result.ttft_ms is None


def test_invalid_input_surfaces_as_sizer_error(sidebar_inputs):
    """Inconsistent inputs raise SizerError, which the UI shows as a message."""
    sidebar_inputs["active_params_b"] = 80.0

    with pytest.raises(SizerError):
        WorkloadSpec.from_inputs(sidebar_inputs)


def test_export_to_json(sidebar_inputs):
    """Test the JSON download payload."""
    result = RequirementEstimator().estimate(WorkloadSpec.from_inputs(sidebar_inputs))
    recommendations = HardwareMatcher().recommend(result)

    payload = json.dumps({"requirements": result.to_dict(), "recommendations": recommendations.to_dict()})
    data = json.loads(payload)

    assert data["requirements"]["params_b"] == 8.0
    assert data["recommendations"]["all"]


def test_export_to_csv(sidebar_inputs):
    """Test the CSV download round-trips through pandas."""
    result = RequirementEstimator().estimate(WorkloadSpec.from_inputs(sidebar_inputs))
    recommendations = HardwareMatcher().recommend(result)

    csv = recommendations_to_dataframe(recommendations.all).to_csv(index=False)
    df = pd.read_csv(StringIO(csv))

    assert list(df.columns) == DATAFRAME_COLUMNS
    assert len(df) == len(recommendations.all)


def test_ttft_chart_data():
    """The TTFT tab charts one series per prompt length."""
    prompt_lengths = sorted({2048, 4096, 8192, 3000})

    df = curves_to_dataframe(generate_ttft_curves(8, prompt_lengths))

    assert list(df.columns) == ["2048 tokens", "3000 tokens", "4096 tokens", "8192 tokens"]
    assert df.notna().all().all()
