"""
Timeout constants for FreezeRay.

Centralizes timeout values for the external toolchain so they are tuned in
one place. Nothing in the freeze pipeline retries: a timeout surfaces once
as a ``ToolchainTimeout`` error.
"""

from __future__ import annotations

# =============================================================================
# xcodebuild
# =============================================================================

# `xcodebuild -list -json` can be slow on first run (package resolution)
XCODEBUILD_LIST_TIMEOUT_S = 300

# Combined build-and-test of the generated driver
XCODEBUILD_TEST_TIMEOUT_S = 1800

# =============================================================================
# Simulator control (xcrun simctl)
# =============================================================================

# Listing devices
SIMCTL_LIST_TIMEOUT_S = 60

# Booting a device
SIMCTL_BOOT_TIMEOUT_S = 180

# Waiting for a booted device to finish startup
SIMCTL_BOOTSTATUS_TIMEOUT_S = 300

# =============================================================================
# Default
# =============================================================================

# Any other short-lived tool invocation
SUBPROCESS_DEFAULT_TIMEOUT_S = 30
