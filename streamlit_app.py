#!/usr/bin/env python3
"""Streamlit UI for the LLM hardware sizer.

This application collects a workload description, runs the requirement
estimator and the hardware matcher, and visualizes memory, compute,
bandwidth and time-to-first-token against the selected hardware.
"""

import json
from typing import Optional

import streamlit as st

from llm_sizer import HardwareMatcher, RequirementEstimator, WorkloadSpec
from llm_sizer.errors import SizerError
from llm_sizer.estimator import fit_status
from llm_sizer.gpu_library import ACCELERATOR_LIBRARY, get_gpu_from_library, hardware_inputs
from llm_sizer.models import Precision, RequirementsResult
from llm_sizer.recommender import HardwareRecommendations, recommendations_to_dataframe
from llm_sizer.ttft import TTFT_THRESHOLDS, curves_to_dataframe, format_ttft, generate_ttft_curves

# Page configuration
st.set_page_config(
    page_title="LLM Hardware Sizer",
    page_icon="🖥️",
    layout="wide",
    initial_sidebar_state="expanded",
)

FIT_ICONS = {"fit": "✅", "warn": "⚠️", "danger": "❌", None: "❔"}
PRECISIONS = [p.value for p in Precision]


def main():
    """Main Streamlit application."""
    st.title("🖥️ LLM Hardware Sizer")
    st.markdown("**Estimate the memory, compute and bandwidth an LLM workload needs**")

    with st.sidebar:
        st.header("⚙️ Model")
        params_b = st.number_input("Parameters (Billions)", min_value=0.1, value=8.0, step=0.5)
        active_params_b = st.number_input(
            "Active Parameters (Billions, 0 = dense)",
            min_value=0.0,
            value=0.0,
            step=0.5,
            help="Parameters used per token for mixture-of-experts models",
        )
        num_experts = st.number_input(
            "Experts (0 = dense)",
            min_value=0,
            value=0,
            step=1,
            help="Used to derive active parameters when they are left at 0",
        )
        top_k = st.number_input("Experts per Token", min_value=1, value=1, step=1)
        weight_precision = st.selectbox("Weight Precision", PRECISIONS, index=0)
        kv_precision = st.selectbox("KV Cache Precision", PRECISIONS, index=0)

        with st.expander("Advanced: Architecture Overrides"):
            st.info("Leave at 0 to infer from the parameter count.")
            layers = st.number_input("Number of Layers", min_value=0, value=0, step=1)
            hidden_size = st.number_input("Hidden Size", min_value=0, value=0, step=64)
            heads = st.number_input("Attention Heads", min_value=0, value=0, step=1)

        st.header("📝 Workload")
        prompt_tokens = st.number_input("Prompt Tokens", min_value=0, value=2048, step=256)
        new_tokens = st.number_input("New Tokens", min_value=0, value=512, step=64)
        batch_size = st.number_input("Concurrent Streams", min_value=1, value=1, step=1)
        target_tps = st.number_input("Target Tokens/s per Stream", min_value=0.0, value=20.0, step=1.0)
        ttft_budget_ms = st.number_input("TTFT Budget (ms)", min_value=0.0, value=1000.0, step=100.0)

        st.header("🔧 Hardware")
        gpu_ids = ["(none)"] + [gpu.id for gpu in ACCELERATOR_LIBRARY]
        gpu_id = st.selectbox(
            "GPU",
            gpu_ids,
            format_func=lambda i: i if i == "(none)" else get_gpu_from_library(i).name,
        )
        gpu_count = st.number_input("GPU Count", min_value=1, max_value=8, value=1, step=1)
        util_compute = st.slider("Compute Utilization", 0.05, 1.0, 0.4, 0.05)
        util_bandwidth = st.slider("Bandwidth Utilization", 0.05, 1.0, 0.6, 0.05)

    inputs = {
        "params_b": params_b,
        "active_params_b": active_params_b,
        "num_experts": num_experts,
        "top_k": top_k,
        "weight_precision": weight_precision,
        "kv_precision": kv_precision,
        "layers": layers,
        "hidden_size": hidden_size,
        "heads": heads,
        "prompt_tokens": prompt_tokens,
        "new_tokens": new_tokens,
        "batch_size": batch_size,
        "target_tps": target_tps,
        "ttft_budget_ms": ttft_budget_ms,
        "util_compute": util_compute,
        "util_bandwidth": util_bandwidth,
    }
    if gpu_id != "(none)":
        inputs.update(hardware_inputs(get_gpu_from_library(gpu_id), gpu_count))

    try:
        spec = WorkloadSpec.from_inputs(inputs)
    except SizerError as e:
        st.error(f"❌ {e}")
        return

    result = RequirementEstimator().estimate(spec)
    recommendations = HardwareMatcher(ACCELERATOR_LIBRARY).recommend(result)

    tab1, tab2, tab3 = st.tabs(["📊 Requirements", "🖥️ Hardware", "⏱️ TTFT"])

    with tab1:
        render_requirements_tab(result, spec.vram_available_gb)

    with tab2:
        render_hardware_tab(recommendations)

    with tab3:
        render_ttft_tab(result)

    st.download_button(
        label="📥 Download JSON",
        data=json.dumps(
            {"requirements": result.to_dict(), "recommendations": recommendations.to_dict()},
            indent=2,
        ),
        file_name="llm_sizing.json",
        mime="application/json",
    )


def render_requirements_tab(result: RequirementsResult, vram_available_gb: Optional[float]):
    """Render the requirement metrics and the hardware fit checks."""
    st.caption(
        f"{result.layers} layers · hidden {result.hidden_size} · "
        f"{result.heads} heads × {result.head_dim} · {result.active_params_b:g}B active"
    )

    col1, col2, col3, col4 = st.columns(4)
    col1.metric(
        "VRAM",
        f"{result.total_vram_gb:.1f} GB",
        help=(
            f"Weights {result.weight_bytes_total / 1e9:.1f} GB, "
            f"KV cache {result.kv_cache_bytes / 1e9:.1f} GB, "
            f"workspace {result.workspace_bytes / 1e9:.1f} GB"
        ),
    )
    col2.metric("Compute", f"{result.required_tflops:.2f} TFLOPS")
    col3.metric(
        "Bandwidth",
        f"{result.required_bw_gbps_conservative:.0f} GB/s",
        help=f"Optimistic: {result.required_bw_gbps_optimistic:.0f} GB/s",
    )
    col4.metric("TTFT", format_ttft(result.ttft_ms / 1000) if result.ttft_ms is not None else "N/A")

    if vram_available_gb is None:
        st.info("Select a GPU in the sidebar to check the fit.")
        return

    checks = [
        ("VRAM", fit_status(result.total_vram_gb, vram_available_gb)),
        ("Compute", fit_status(result.required_tflops, result.effective_tflops)),
        ("Bandwidth", fit_status(result.required_bw_gbps_conservative, result.effective_bw_gbps)),
    ]
    for label, status in checks:
        st.markdown(f"{FIT_ICONS[status]} **{label}**: {status or 'unknown'}")
    if result.ttft_ok is not None:
        icon = "✅" if result.ttft_ok else "❌"
        st.markdown(f"{icon} **TTFT**: {result.ttft_ms:.0f} ms vs {result.ttft_budget_ms:.0f} ms budget")


def render_hardware_tab(recommendations: HardwareRecommendations):
    """Render the categorized hardware recommendations."""
    if recommendations.is_empty:
        st.warning("⚠️ No configuration in the catalog fits this workload")
        return

    for title, recs in (
        ("🎮 Consumer", recommendations.consumer),
        ("🏢 Professional & Apple", recommendations.professional),
        ("🏭 Datacenter", recommendations.datacenter),
    ):
        st.subheader(title)
        if recs:
            st.dataframe(recommendations_to_dataframe(recs), use_container_width=True, hide_index=True)
        else:
            st.info("No fit in this category")

    df = recommendations_to_dataframe(recommendations.all)
    st.download_button(
        label="📥 Download CSV",
        data=df.to_csv(index=False),
        file_name="llm_hardware.csv",
        mime="text/csv",
    )


def render_ttft_tab(result: RequirementsResult):
    """Render TTFT curves for the current model size."""
    prompt_lengths = sorted({2048, 4096, 8192, max(result.prompt_tokens, 1)})
    curves = generate_ttft_curves(result.active_params_b, prompt_lengths)
    st.line_chart(curves_to_dataframe(curves))
    st.caption(
        "Dense prefill only. Thresholds: "
        + ", ".join(f"{t.label} ≤ {t.value:g}s" for t in TTFT_THRESHOLDS)
    )


if __name__ == "__main__":
    main()
