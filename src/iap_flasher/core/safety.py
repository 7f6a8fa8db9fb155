"""
Safety context and gating for catalog edits and flashing.

Centralizes the confirmation and gating rules so that CLI and Streamlit
enforce identical checks:

- Catalog edits (save/delete) are only allowed in admin mode.
- Flashing a target requires an explicit confirmation.
"""

import sys
from dataclasses import dataclass
from typing import Callable, Optional

# Confirmation token required for non-interactive flashing
CONFIRMATION_TOKEN = "FLASH"


class PermissionDeniedError(Exception):
    """
    Raised when an operation is not permitted.

    Attributes:
        reason: Human-readable explanation of why the operation was denied
        details: Additional context (firmware, chip, probe, etc.)
    """
    def __init__(self, reason: str, details: Optional[dict] = None):
        self.reason = reason
        self.details = details or {}
        super().__init__(reason)


@dataclass
class SafetyContext:
    """
    Safety context for gated operations.

    Attributes:
        admin_mode: Whether catalog editing is enabled
        confirmation_token: For non-interactive mode, must match CONFIRMATION_TOKEN
        interactive: Whether the front end can prompt for confirmation
    """
    admin_mode: bool = False
    confirmation_token: Optional[str] = None
    interactive: bool = True

    # CLI sets these to prompt functions; Streamlit uses the token instead
    prompt_confirmation: Optional[Callable[[str], str]] = None
    show_details: Optional[Callable[[dict], None]] = None


def require_admin_mode(ctx: SafetyContext, operation: str = "edit the catalog") -> None:
    """
    Deny catalog edits outside admin mode.

    Raises:
        PermissionDeniedError: If admin mode is off
    """
    if not ctx.admin_mode:
        raise PermissionDeniedError(
            f"Admin mode required to {operation}. "
            "CLI: use --admin. UI: enable the Admin switch.",
            details={"operation": operation},
        )


def require_flash_permission(ctx: SafetyContext, details: Optional[dict] = None) -> None:
    """
    Enforce flash confirmation rules.

    Rules enforced:
    1. If a confirmation token is present it must match exactly
    2. If interactive: show details and prompt for the token
    3. Otherwise deny

    Raises:
        PermissionDeniedError: If flashing is not confirmed
    """
    details = dict(details or {})

    if ctx.confirmation_token is not None:
        if ctx.confirmation_token.strip().upper() != CONFIRMATION_TOKEN:
            raise PermissionDeniedError(
                f"Confirmation token mismatch. Expected '{CONFIRMATION_TOKEN}'.",
                details=details,
            )
        return

    if not ctx.interactive:
        raise PermissionDeniedError(
            "Non-interactive mode requires a confirmation token.",
            details=details,
        )

    if ctx.show_details:
        ctx.show_details(details)

    if ctx.prompt_confirmation is None:
        raise PermissionDeniedError(
            "Interactive confirmation required but no prompt handler set. "
            "Provide a confirmation token for non-interactive mode.",
            details=details,
        )

    user_input = ctx.prompt_confirmation(
        f"Type '{CONFIRMATION_TOKEN}' to proceed, or anything else to abort"
    )
    if user_input.strip().upper() != CONFIRMATION_TOKEN:
        raise PermissionDeniedError(
            "Confirmation failed. Flash aborted by user.",
            details=details,
        )


def create_cli_safety_context(
    admin_mode: bool = False,
    confirmation_token: Optional[str] = None,
) -> SafetyContext:
    """
    Create a SafetyContext configured for CLI usage.

    Interactive prompting is only possible with a TTY and no token.
    """
    interactive = sys.stdin.isatty() and confirmation_token is None
    return SafetyContext(
        admin_mode=admin_mode,
        confirmation_token=confirmation_token,
        interactive=interactive,
    )


def create_streamlit_safety_context(
    admin_mode: bool = False,
    flash_confirmed: bool = False,
) -> SafetyContext:
    """
    Create a SafetyContext configured for Streamlit usage.

    Streamlit never prompts; the confirmation checkbox stands in for the token.
    """
    return SafetyContext(
        admin_mode=admin_mode,
        confirmation_token=CONFIRMATION_TOKEN if flash_confirmed else None,
        interactive=False,
    )
