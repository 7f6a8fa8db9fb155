"""
Streamlit UI for IAP Flasher.

Catalog tree in the sidebar, entry editor and flash panel in the main area.

NOTE: This module requires the optional 'ui' extra to be installed:
    pip install -e ".[ui]"
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional

# Guard streamlit import - it's an optional dependency
try:
    import streamlit as st
except ImportError as e:
    _missing = "streamlit" if "streamlit" in str(e) else str(e)
    print(
        f"\n[ERROR] Missing required package: {_missing}\n\n"
        f"The Streamlit UI requires extra dependencies.\n"
        f"Install them with:\n\n"
        f"    pip install -e \".[ui]\"\n\n"
        f"Or install streamlit directly:\n\n"
        f"    pip install streamlit\n"
    )
    sys.exit(1)

from iap_flasher.catalog import Catalog, FirmwareImage
from iap_flasher.config import load_settings
from iap_flasher.core.actions import (
    delete_entry,
    flash_firmware,
    open_catalog,
    refresh_probes,
    save_entry,
)
from iap_flasher.core.flashing import FlashOrchestrator, select_probe
from iap_flasher.core.messages import result_to_warnings
from iap_flasher.core.safety import (
    PermissionDeniedError,
    create_streamlit_safety_context,
)
from iap_flasher.probe.interfaces import Permissions, ProbeDescriptor, UnknownFamilyError
from iap_flasher.probe.pyocd_backend import (
    PyocdFlasher,
    PyocdProbeRegistry,
    PyocdTargetRegistry,
)
from iap_flasher.ui.components import (
    init_gate_state,
    render_admin_switch,
    render_flash_confirmation,
    render_raw_logs,
    render_result_warnings,
    render_status_error,
    render_status_success,
    reset_flash_confirmation,
)

logger = logging.getLogger(__name__)

FORM_FIELDS = ("series", "product", "name", "version", "fw_path", "chip_family", "chip_type")


def _init_session_state():
    """Initialize session state for persistence."""
    settings = load_settings()
    if "settings" not in st.session_state:
        st.session_state.settings = settings
    if "catalog" not in st.session_state:
        catalog, result = open_catalog(settings.catalog_path)
        st.session_state.catalog = catalog
        st.session_state.catalog_result = result
        if result.warnings:
            st.session_state.status = result.warnings[0]
        else:
            st.session_state.status = f"Loaded {catalog.image_count} firmware image(s)"
    if "probes" not in st.session_state:
        st.session_state.probes = []
    if "probe_registry" not in st.session_state:
        st.session_state.probe_registry = PyocdProbeRegistry()
    if "target_registry" not in st.session_state:
        st.session_state.target_registry = PyocdTargetRegistry()
    if "last_result" not in st.session_state:
        st.session_state.last_result = None
    for field in FORM_FIELDS:
        key = f"form_{field}"
        if key not in st.session_state:
            st.session_state[key] = ""
    init_gate_state(admin_default=settings.admin_mode)


def _select_entry(series_name: str, product_name: str, image: FirmwareImage) -> None:
    """Fill the form from a catalog entry (sidebar button callback)."""
    st.session_state.form_series = series_name
    st.session_state.form_product = product_name
    st.session_state.form_name = image.name
    st.session_state.form_version = image.version
    st.session_state.form_fw_path = image.fw_path
    st.session_state.form_chip_family = image.chip_family
    st.session_state.form_chip_type = image.chip_type
    st.session_state.status = f"Selected: {series_name} / {product_name} / {image.name}-{image.version}"


def _form_image() -> FirmwareImage:
    return FirmwareImage(
        name=st.session_state.form_name.strip(),
        version=st.session_state.form_version.strip(),
        fw_path=st.session_state.form_fw_path.strip(),
        chip_family=st.session_state.form_chip_family,
        chip_type=st.session_state.form_chip_type,
    )


def _with_current(options: List[str], current: str) -> List[str]:
    """Keep a stored value selectable even if the target database lacks it."""
    if current and current not in options:
        return [current] + list(options)
    return list(options)


def render_catalog_tree(catalog: Catalog) -> None:
    """Render the catalog as nested expanders with one button per image."""
    st.sidebar.markdown("## 📦 Firmware Catalog")
    if catalog.is_empty:
        st.sidebar.info("Catalog is empty")
        return

    for series in catalog.series:
        with st.sidebar.expander(series.name, expanded=True):
            for product in series.products:
                st.markdown(f"**{product.name}**")
                for index, image in enumerate(product.firmware):
                    st.button(
                        image.label(),
                        key=f"pick::{series.name}::{product.name}::{index}",
                        on_click=_select_entry,
                        args=(series.name, product.name, image),
                        use_container_width=True,
                    )


def render_entry_form(admin: bool) -> None:
    """Editable entry fields plus chip family/type pickers."""
    col1, col2 = st.columns(2)
    with col1:
        st.text_input("Series", key="form_series", disabled=not admin)
        st.text_input("Product", key="form_product", disabled=not admin)
        st.text_input("Firmware name", key="form_name", disabled=not admin)
    with col2:
        st.text_input("Version", key="form_version", disabled=not admin)
        st.text_input("Firmware path", key="form_fw_path", disabled=not admin)

    target_registry = st.session_state.target_registry
    family_options = _with_current(target_registry.families(), st.session_state.form_chip_family)
    col3, col4 = st.columns(2)
    with col3:
        family = st.selectbox(
            "Chip family",
            options=[""] + family_options,
            key="form_chip_family",
            disabled=not admin,
        )
    try:
        chip_options = target_registry.targets_for_family(family) if family else []
    except UnknownFamilyError:
        chip_options = []
    with col4:
        st.selectbox(
            "Chip type",
            options=[""] + _with_current(chip_options, st.session_state.form_chip_type),
            key="form_chip_type",
            disabled=not admin,
        )


def render_admin_buttons() -> None:
    """Save / Delete buttons, enabled in admin mode only."""
    settings = st.session_state.settings
    safety_ctx = create_streamlit_safety_context(admin_mode=st.session_state.admin_mode)
    catalog = st.session_state.catalog
    series_name = st.session_state.form_series.strip()
    product_name = st.session_state.form_product.strip()
    image = _form_image()

    col1, col2 = st.columns(2)
    with col1:
        if st.button("💾 Save", disabled=not st.session_state.admin_mode, use_container_width=True):
            try:
                result = save_entry(
                    catalog, settings.catalog_path, series_name, product_name, image, safety_ctx
                )
            except PermissionDeniedError as e:
                st.session_state.status = e.reason
                return
            st.session_state.last_result = result
            st.session_state.status = (
                f"Saved: {series_name} / {product_name} / {image.label()}"
                if result.ok
                else result.errors[0]
            )
            st.rerun()
    with col2:
        if st.button("🗑️ Delete", disabled=not st.session_state.admin_mode, use_container_width=True):
            try:
                result = delete_entry(
                    catalog,
                    settings.catalog_path,
                    series_name,
                    product_name,
                    image.name,
                    safety_ctx,
                    version=image.version,
                    chip_family=image.chip_family or None,
                    chip_type=image.chip_type or None,
                )
            except PermissionDeniedError as e:
                st.session_state.status = e.reason
                return
            st.session_state.last_result = result
            if not result.ok:
                st.session_state.status = result.errors[0]
            elif result.metadata["removed"]:
                st.session_state.status = f"Deleted: {series_name} / {product_name} / {image.name}"
            else:
                st.session_state.status = result.warnings[0]
            st.rerun()


def render_probe_picker() -> Optional[int]:
    """Probe selectbox with a refresh button. Returns the selected index."""
    col1, col2 = st.columns([4, 1])
    with col2:
        if st.button("🔄 Refresh", use_container_width=True):
            result = refresh_probes(st.session_state.probe_registry)
            st.session_state.probes = result.metadata["probes"]
            st.session_state.status = (
                f"Found {len(st.session_state.probes)} probe(s)"
                if result.ok
                else result.errors[0]
            )
            if result.warnings:
                st.session_state.status = result.warnings[0]

    probes: List[ProbeDescriptor] = st.session_state.probes
    with col1:
        if not probes:
            st.selectbox("Debug probe", options=["(no probes, press Refresh)"], disabled=True)
            return None
        return st.selectbox(
            "Debug probe",
            options=list(range(len(probes))),
            format_func=lambda i: probes[i].label(i),
            key="probe_index",
        )


def render_flash_panel(probe_index: Optional[int]) -> None:
    """Download button gated by the confirmation panel."""
    image = _form_image()
    details = {
        "firmware": image.label(),
        "fw_path": image.fw_path,
        "chip": f"{image.chip_family} / {image.chip_type}",
    }
    if probe_index is not None:
        details["probe"] = st.session_state.probes[probe_index].identifier

    confirmed = render_flash_confirmation(details)
    ready = confirmed and probe_index is not None and bool(image.fw_path) and bool(image.chip_type)

    if not st.button("⬇️ Download", type="primary", disabled=not ready, use_container_width=True):
        return

    settings = st.session_state.settings
    probe = select_probe(st.session_state.probes, probe_index)
    orchestrator = FlashOrchestrator(
        st.session_state.probe_registry,
        PyocdFlasher(),
        st.session_state.target_registry,
    )
    safety_ctx = create_streamlit_safety_context(flash_confirmed=confirmed)

    try:
        with st.spinner(f"Flashing {image.label()}..."):
            result = flash_firmware(
                image,
                probe,
                orchestrator,
                safety_ctx,
                permissions=Permissions(allow_erase_all=settings.allow_erase_all),
            )
    except PermissionDeniedError as e:
        render_status_error(f"Flash not permitted: {e.reason}")
        return
    finally:
        reset_flash_confirmation()

    st.session_state.last_result = result
    st.session_state.status = result.message
    if result.ok:
        if result.artifact is not None:
            details.update(size=result.artifact.size, sha256=result.artifact.sha256)
        render_status_success(result.message, details=details)
    else:
        render_status_error(result.message, warnings=result_to_warnings(result))


def main():
    """Streamlit app main."""
    st.set_page_config(
        page_title="IAP Flasher",
        page_icon="🔧",
        layout="wide",
    )

    _init_session_state()

    catalog_result = st.session_state.catalog_result
    render_catalog_tree(st.session_state.catalog)

    st.title("🔧 IAP Flasher")
    st.caption(f"Catalog: {Path(st.session_state.settings.catalog_path).resolve()}")
    if catalog_result.warnings:
        render_result_warnings(catalog_result, collapsed_default=False)

    admin = render_admin_switch()
    st.divider()

    st.markdown("#### Firmware Entry")
    render_entry_form(admin)
    render_admin_buttons()
    st.divider()

    st.markdown("#### Flash")
    probe_index = render_probe_picker()
    render_flash_panel(probe_index)

    last = st.session_state.last_result
    if last is not None:
        if last.operation != "flash_firmware":
            render_result_warnings(last)
        render_raw_logs(last.logs)

    st.divider()
    st.text(f"Status: {st.session_state.status}")


def launch() -> None:
    """Launch the Streamlit app without requiring a manual CLI command."""
    from streamlit.web import bootstrap

    app_path = str(Path(__file__).resolve())
    bootstrap.run(app_path, "streamlit run", [], {})


if __name__ == "__main__":
    main()
