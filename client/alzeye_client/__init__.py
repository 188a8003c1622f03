"""Client-side helpers for the AlzEye Predict Streamlit UI."""
