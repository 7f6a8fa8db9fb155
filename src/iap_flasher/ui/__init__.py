"""Streamlit UI components (requires the 'ui' extra)."""
