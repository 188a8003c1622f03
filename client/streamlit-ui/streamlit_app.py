# streamlit_app.py
import logging

import streamlit as st

from alzeye_client.api import ScreeningApiClient
from alzeye_client.report import REPORT_FILE_NAME, breakdown_chart_png, load_preview, make_risk_report_pdf
from alzeye_client.session import SubmissionTracker, check_model, run_submission
from alzeye_server.errors import ExportFailure, InputUnavailable
from config import get_config

st.set_page_config(page_title="AlzEye Predict", page_icon="👁️", layout="wide")

_CFG = get_config()
logging.basicConfig(level=_CFG["LOG_LEVEL"], format="%(asctime)s %(levelname)s %(name)s: %(message)s")

client = ScreeningApiClient(_CFG["API_BASE"], timeout=_CFG["API_TIMEOUT"])

if "tracker" not in st.session_state:
    st.session_state["tracker"] = SubmissionTracker()
tracker: SubmissionTracker = st.session_state["tracker"]

# model state is checked once per session
if "model_error" not in st.session_state:
    st.session_state["model_error"] = check_model(client)
    if st.session_state["model_error"]:
        st.toast(f"Model Load Error: {st.session_state['model_error']}")

# ---------------- UI ----------------
st.title("AlzEye Predict")
st.caption("Upload an eye image for a preliminary, AI-assisted Alzheimer's risk screening.")

with st.sidebar:
    st.markdown("### Settings")
    st.text_input("API Base (read-only)", _CFG["API_BASE"], disabled=True)
    st.markdown(
        "<div style='padding:.6rem;border:1px solid #666;border-radius:6px;'>"
        "<b>Disclaimer:</b> This tool provides a preliminary screening result, not a diagnosis. "
        "Always consult a qualified healthcare professional.</div>",
        unsafe_allow_html=True
    )

uploaded = st.file_uploader("Drag an eye image here …", type=["jpg", "jpeg", "png"],
                            label_visibility="collapsed")

if st.session_state["model_error"]:
    st.error(st.session_state["model_error"])

if uploaded:
    try:
        st.image(load_preview(uploaded.getvalue()), caption=uploaded.name, width=320)
    except InputUnavailable as e:
        st.error(e.user_message)

run_clicked = st.button("Predict Risk", type="primary", disabled=not uploaded)

if run_clicked and uploaded:
    with st.spinner("Analyzing image and interpreting results with AI…"):
        sub = run_submission(client, tracker, uploaded.name, uploaded.getvalue())
    if sub is not None and sub.error:
        title = "Prediction Error" if sub.prediction is None else "Analysis Error"
        st.toast(f"{title}: {sub.error}")
    elif sub is not None:
        st.toast("Risk assessment and interpretation are ready.")

sub = tracker.current
if sub is None:
    st.stop()

if sub.error:
    st.error(sub.error)

if sub.prediction:
    pred = sub.prediction
    colL, colR = st.columns([0.5, 0.5], gap="large")
    chart_png = breakdown_chart_png(pred.predictions)
    with colL:
        st.subheader("Classification breakdown")
        st.image(chart_png, width="stretch")
        for p in pred.predictions:
            st.progress(p.probability, text=f"{p.label}: {p.probability * 100:.1f}%")
    with colR:
        st.subheader("Prediction")
        st.markdown(
            f"**Effective class:** {pred.effective.label} "
            f"({pred.confidence_percent}% confidence) · **Risk category:** {pred.risk_category.value}"
        )
        if sub.interpretation:
            narrative = sub.interpretation.narrative
            st.info(narrative.visualization)
            with st.expander("Interpretation", expanded=True):
                st.markdown(narrative.interpretation)
            with st.expander("Suggested next steps", expanded=True):
                st.markdown(narrative.next_steps)

    if sub.interpretation:
        st.divider()
        try:
            pdf_bytes = make_risk_report_pdf(pred, sub.interpretation, sub.image_bytes, chart_png)
            st.download_button("Download Risk Report (PDF)", data=pdf_bytes,
                               file_name=REPORT_FILE_NAME, mime="application/pdf")
        except ExportFailure as e:
            st.error(e.user_message)
            st.toast(f"PDF Export Error: {e.user_message}")

prev = tracker.last_complete
if prev is not None and prev.token != sub.token:
    with st.expander(f"Previous result: {prev.image_name}"):
        st.markdown(f"**{prev.interpretation.effective.label}** "
                    f"({prev.interpretation.confidence_percent}% confidence)")
        st.markdown(prev.interpretation.narrative.interpretation)
