"""
Reusable Streamlit UI components for IAP Flasher.

Provides consistent UI elements across the app:
- Admin switch and flash confirmation
- Warning/error display with collapsible sections
- Operation result preview and status blocks
"""

from typing import List, Optional, Dict, Any
import streamlit as st

from iap_flasher.core.messages import (
    MessageLevel,
    WarningItem,
    result_to_warnings,
)
from iap_flasher.core.results import OperationResult
from iap_flasher.core.safety import CONFIRMATION_TOKEN


# =============================================================================
# Session State Management
# =============================================================================

def init_gate_state(admin_default: bool = False) -> None:
    """Initialize session state for admin mode and flash confirmation."""
    if "admin_mode" not in st.session_state:
        st.session_state.admin_mode = admin_default
    if "flash_risk_acknowledged" not in st.session_state:
        st.session_state.flash_risk_acknowledged = False
    if "flash_confirmation_token" not in st.session_state:
        st.session_state.flash_confirmation_token = ""
    if "flash_confirm_round" not in st.session_state:
        st.session_state.flash_confirm_round = 0


def is_flash_confirmed() -> bool:
    """Check if the flash confirmation is complete."""
    init_gate_state()
    return (
        st.session_state.flash_risk_acknowledged
        and st.session_state.flash_confirmation_token.strip().upper() == CONFIRMATION_TOKEN
    )


def reset_flash_confirmation() -> None:
    """
    Require a fresh confirmation for the next flash.

    Streamlit keeps widget values under their keys, so the confirmation
    widgets are keyed by a round counter and a new round gets new widgets.
    """
    init_gate_state()
    st.session_state.flash_risk_acknowledged = False
    st.session_state.flash_confirmation_token = ""
    st.session_state.flash_confirm_round += 1


# =============================================================================
# Admin Switch Component
# =============================================================================

def render_admin_switch() -> bool:
    """
    Render the admin mode toggle.

    Returns:
        bool: True if catalog editing is enabled
    """
    init_gate_state()

    enabled = st.toggle(
        "🔐 Admin mode",
        value=st.session_state.admin_mode,
        key="admin_toggle",
        help="Admin mode enables saving and deleting catalog entries.",
    )
    st.session_state.admin_mode = enabled
    if enabled:
        st.caption("✏️ Catalog editing enabled")
    return enabled


# =============================================================================
# Flash Confirmation Component
# =============================================================================

def render_flash_confirmation(details: Optional[Dict[str, Any]] = None) -> bool:
    """
    Render the flash confirmation panel with checkbox and typed token.

    Args:
        details: Optional flash details to preview

    Returns:
        bool: True if all confirmation requirements are met
    """
    init_gate_state()
    confirm_round = st.session_state.flash_confirm_round

    with st.container():
        st.markdown("#### ✅ Flash Confirmation")

        if details:
            with st.expander("📋 Flash Preview", expanded=True):
                render_operation_preview_details(details)

        col1, col2 = st.columns(2)

        with col1:
            risk_ack = st.checkbox(
                "**I understand** the target flash will be overwritten",
                value=st.session_state.flash_risk_acknowledged,
                key=f"flash_risk_checkbox_{confirm_round}",
            )
            st.session_state.flash_risk_acknowledged = risk_ack

        with col2:
            token = st.text_input(
                f"Type **{CONFIRMATION_TOKEN}** to confirm:",
                value=st.session_state.flash_confirmation_token,
                key=f"flash_token_input_{confirm_round}",
                help=f"You must type exactly '{CONFIRMATION_TOKEN}' to enable flashing",
            )
            st.session_state.flash_confirmation_token = token

        is_confirmed = is_flash_confirmed()
        if not is_confirmed:
            missing = []
            if not st.session_state.flash_risk_acknowledged:
                missing.append("acknowledge the overwrite")
            if st.session_state.flash_confirmation_token.strip().upper() != CONFIRMATION_TOKEN:
                missing.append(f"type '{CONFIRMATION_TOKEN}'")
            st.caption(f"To flash, you must: {', '.join(missing)}")

        return is_confirmed


# =============================================================================
# Warning List Component
# =============================================================================

def render_warning_list(
    warnings: List[WarningItem],
    collapsed_default: bool = True,
    title: str = "⚠️ Warnings",
) -> None:
    """
    Render a list of warnings in a collapsible expander.

    Args:
        warnings: List of WarningItem objects to display
        collapsed_default: Whether expander is collapsed by default
        title: Title for the expander section
    """
    if not warnings:
        return

    error_count = sum(1 for w in warnings if w.level == MessageLevel.ERROR)
    warn_count = sum(1 for w in warnings if w.level == MessageLevel.WARN)

    counts = []
    if error_count:
        counts.append(f"❌ {error_count} error{'s' if error_count > 1 else ''}")
    if warn_count:
        counts.append(f"⚠️ {warn_count} warning{'s' if warn_count > 1 else ''}")

    display_title = f"{title} ({', '.join(counts)})" if counts else title

    # Force open if there are errors
    expanded = not collapsed_default or error_count > 0

    with st.expander(display_title, expanded=expanded):
        for warning in warnings:
            _render_single_warning(warning)


def _render_single_warning(warning: WarningItem) -> None:
    if warning.level == MessageLevel.ERROR:
        container = st.error
    elif warning.level == MessageLevel.WARN:
        container = st.warning
    else:
        container = st.info

    container(f"**{warning.title}**")
    if warning.remediation:
        st.caption(f"{warning.code.value}: {warning.remediation}")


def render_result_warnings(result: OperationResult, collapsed_default: bool = True) -> None:
    """Render the warnings and errors of an OperationResult."""
    render_warning_list(result_to_warnings(result), collapsed_default=collapsed_default)


# =============================================================================
# Operation Preview Component
# =============================================================================

def render_operation_preview_details(details: Dict[str, Any]) -> None:
    """
    Render operation details as a structured display.

    Args:
        details: Dictionary of details to display
    """
    col1, col2 = st.columns(2)

    with col1:
        if details.get("firmware"):
            st.markdown(f"**Firmware:** `{details['firmware']}`")
        if details.get("chip"):
            st.markdown(f"**Chip:** `{details['chip']}`")

    with col2:
        if details.get("probe"):
            st.markdown(f"**Probe:** `{details['probe']}`")
        if details.get("size"):
            st.markdown(f"**Size:** {details['size']:,} bytes")

    if details.get("fw_path"):
        st.markdown(f"**File:** `{details['fw_path']}`")

    if details.get("sha256"):
        st.code(f"sha256: {details['sha256'][:16]}...", language=None)

    if details.get("metadata"):
        with st.expander("🔧 Technical Details", expanded=False):
            for key, value in details["metadata"].items():
                st.text(f"{key}: {value}")


# =============================================================================
# Status Block Components
# =============================================================================

def render_status_success(
    title: str,
    message: str = "",
    details: Optional[Dict[str, Any]] = None,
) -> None:
    """Render a success status block."""
    st.success(f"✅ **{title}**")
    if message:
        st.markdown(message)
    if details:
        with st.expander("Details", expanded=False):
            render_operation_preview_details(details)


def render_status_error(
    title: str,
    message: str = "",
    warnings: Optional[List[WarningItem]] = None,
) -> None:
    """Render an error status block."""
    st.error(f"❌ **{title}**")
    if message:
        st.markdown(message)
    if warnings:
        render_warning_list(warnings, collapsed_default=False, title="Error Details")


# =============================================================================
# Raw Logs Component
# =============================================================================

def render_raw_logs(
    logs: List[str],
    title: str = "📜 Raw Logs",
    collapsed_default: bool = True,
) -> None:
    """Render raw log output in a collapsible section."""
    if not logs:
        return

    with st.expander(title, expanded=not collapsed_default):
        st.code("\n".join(logs), language="text")
