"""Minimal Streamlit frontend for the SERP Intent Agent."""

from __future__ import annotations

import hashlib
import json
import time
from typing import Any, Optional

import pandas as pd
import streamlit as st

from llm_analysis.adapter import SUPPORTED_MODELS

st.set_page_config(page_title="SERP Intent Agent", page_icon="SI", layout="wide")


@st.cache_resource(show_spinner=False)
def _load_backend_handles():
    """Build the shared cache handle and analysis service once per process."""
    from app.cache import build_cache  # noqa: PLC0415
    from app.config import get_cache_settings  # noqa: PLC0415
    from app.services.analysis_service import build_analysis_service  # noqa: PLC0415

    cache = build_cache(get_cache_settings())
    return {"cache": cache, "service": build_analysis_service(cache)}


def run_pipeline(keyword: str, target_url: str, model: str, progress_bar) -> dict[str, Any]:
    """Thin frontend adapter that delegates all processing to the service layer.

    Raises:
        RuntimeError: With the public error message when the run fails.
    """
    service = _load_backend_handles()["service"]
    request = service.validate(keyword, target_url, model)
    run = service.start(request)

    for event, data in run.events():
        if event == "progress":
            progress_bar.progress(int(data["progress"]), text=str(data["stage"]))
        elif event == "complete":
            progress_bar.progress(100, text="Analysis complete")
            return data
        else:
            raise RuntimeError(f"{data['error']} ({data['type']})")
    raise RuntimeError("Analysis ended without a result.")


def _competitor_frame(report: dict[str, Any]) -> pd.DataFrame:
    """Flatten competitor analyses into one row per page."""
    rows = []
    for item in report.get("competitorAnalyses", []):
        page = item.get("pageData", {})
        analysis = item.get("analysis", {})
        rows.append(
            {
                "position": item.get("position"),
                "domain": item.get("domain"),
                "title": item.get("title"),
                "content_type": analysis.get("contentType"),
                "content_depth": analysis.get("contentDepth"),
                "word_count": page.get("wordCount"),
                "has_faq": page.get("hasFaq"),
                "has_video": page.get("hasVideo"),
                "schema_types": ", ".join(page.get("schemaTypes") or []),
                "status": item.get("status"),
            }
        )
    return pd.DataFrame(rows)


def _build_run_signature(*, keyword: str, target_url: str, model: str) -> str:
    """Build deterministic signature used to skip unnecessary reruns."""
    payload = {"keyword": keyword.strip(), "target_url": target_url.strip(), "model": model}
    serialized = json.dumps(payload, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


if "pipeline_result" not in st.session_state:
    st.session_state.pipeline_result = None
if "pipeline_error" not in st.session_state:
    st.session_state.pipeline_error = None
if "execution_time_s" not in st.session_state:
    st.session_state.execution_time_s = None
if "last_run_signature" not in st.session_state:
    st.session_state.last_run_signature = None


with st.sidebar:
    st.header("Controls")
    model = st.selectbox("Model", options=list(SUPPORTED_MODELS), index=1)
    run_clicked = st.button("Run Analysis", type="primary", use_container_width=True)
    if st.button("Clear", use_container_width=True):
        st.session_state.pipeline_result = None
        st.session_state.pipeline_error = None
        st.session_state.execution_time_s = None
        st.session_state.last_run_signature = None
        st.rerun()


st.title("SERP Intent Agent")

keyword = st.text_input("Keyword", placeholder="best project management software")
target_url = st.text_input("Target URL", placeholder="https://example.com/page")

if run_clicked:
    run_signature = _build_run_signature(keyword=keyword, target_url=target_url, model=model)
    if (
        st.session_state.pipeline_result is not None
        and st.session_state.last_run_signature == run_signature
    ):
        st.caption("Using previous result (inputs unchanged).")
    else:
        progress_bar = st.progress(0, text="Starting analysis")
        started = time.perf_counter()
        try:
            st.session_state.pipeline_result = run_pipeline(
                keyword,
                target_url,
                model,
                progress_bar,
            )
            st.session_state.pipeline_error = None
            st.session_state.execution_time_s = time.perf_counter() - started
            st.session_state.last_run_signature = run_signature
        except Exception as exc:  # noqa: BLE001
            st.session_state.pipeline_result = None
            st.session_state.pipeline_error = str(exc)
            st.session_state.execution_time_s = None


if st.session_state.pipeline_error:
    st.error(st.session_state.pipeline_error)
elif st.session_state.pipeline_result is None:
    st.info("Enter a keyword and target URL, then run the analysis.")
else:
    result: dict[str, Any] = st.session_state.pipeline_result
    report: dict[str, Any] = result["report"]
    markdown: str = result["markdown"]
    execution_time: Optional[float] = st.session_state.execution_time_s

    if execution_time is not None:
        st.caption(f"Execution time: {execution_time:.2f}s")
    if report.get("incompleteTargetData"):
        st.warning("Target page could not be scraped; recommendations rely on competitor data.")

    tab_report, tab_competitors, tab_raw = st.tabs(["Report", "Competitors", "Raw JSON"])
    with tab_report:
        st.markdown(markdown)
    with tab_competitors:
        st.dataframe(_competitor_frame(report), use_container_width=True)
        audit = report.get("schemaAudit") or {}
        if audit.get("comparison"):
            st.markdown("**Structured data comparison**")
            st.json(audit["comparison"])
    with tab_raw:
        st.json(report)

    dcol1, dcol2 = st.columns(2)
    with dcol1:
        st.download_button(
            label="Download JSON",
            data=json.dumps(report, indent=2, default=str).encode("utf-8"),
            file_name="seo_analysis.json",
            mime="application/json",
            use_container_width=True,
        )
    with dcol2:
        st.download_button(
            label="Download Markdown",
            data=markdown.encode("utf-8"),
            file_name="seo_analysis.md",
            mime="text/markdown",
            use_container_width=True,
        )
