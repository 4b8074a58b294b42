"""
iOS Simulator control through ``xcrun simctl``.

A simulator is resolved from its human-readable name to a UDID exactly
once; every later operation addresses it by that UDID, never by the
``booted`` alias, so another booted simulator cannot be picked up by
accident.
"""

from __future__ import annotations

import json
import logging
from typing import Dict, List, Optional

from freezeray.errors import SandboxBootFailed, SandboxNotFound, ToolchainError
from freezeray.models import SimulatorDevice
from freezeray.timeouts import (
    SIMCTL_BOOT_TIMEOUT_S,
    SIMCTL_BOOTSTATUS_TIMEOUT_S,
    SIMCTL_LIST_TIMEOUT_S,
)
from freezeray.toolchain import ToolchainRunner

logger = logging.getLogger(__name__)

# simctl's failure text when the device is already up
ALREADY_BOOTED_MARKER = "Unable to boot device in current state: Booted"


def _runtime_key(runtime: str) -> List[int]:
    """``com.apple.CoreSimulator.SimRuntime.iOS-18-2`` -> ``[18, 2]``."""
    tail = runtime.rsplit(".", 1)[-1]
    numbers = []
    for part in tail.split("-")[1:]:
        if part.isdigit():
            numbers.append(int(part))
    return numbers


def parse_device_list(output: str) -> List[SimulatorDevice]:
    """Devices from ``simctl list devices available --json``."""
    data = json.loads(output)
    devices = []
    runtimes: Dict[str, list] = data.get("devices", {})
    for runtime, entries in runtimes.items():
        for entry in entries:
            if entry.get("isAvailable") is False:
                continue
            devices.append(
                SimulatorDevice(
                    name=entry["name"],
                    udid=entry["udid"],
                    state=entry.get("state", "Shutdown"),
                    runtime=runtime,
                )
            )
    return devices


class SimulatorManager:
    """Resolve and boot simulators by stable identifier."""

    def __init__(self, runner: ToolchainRunner):
        self.runner = runner

    def list_devices(self) -> List[SimulatorDevice]:
        """
        Available simulator devices.

        Raises:
            ToolchainError: If simctl fails or prints invalid JSON
        """
        cmd = ["xcrun", "simctl", "list", "devices", "available", "--json"]
        result = self.runner.run(
            cmd,
            timeout=SIMCTL_LIST_TIMEOUT_S,
            merge_stderr=False,
            context="Listing simulators",
        )
        if not result.ok:
            raise ToolchainError(
                result.cmd, result.returncode, result.output + result.stderr,
                context="Could not list simulators",
            )
        try:
            return parse_device_list(result.output)
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            raise ToolchainError(
                result.cmd, result.returncode, result.output,
                context=f"Unexpected simctl output: {e}",
            )

    def resolve(self, name: str, devices: Optional[List[SimulatorDevice]] = None) -> SimulatorDevice:
        """
        Resolve a simulator name (or UDID) to one device.

        Among same-named devices a booted one wins, then the newest runtime.

        Raises:
            SandboxNotFound: If no available device matches
        """
        if devices is None:
            devices = self.list_devices()
        for device in devices:
            if device.udid == name:
                return device
        matches = [d for d in devices if d.name == name]
        if not matches:
            names = sorted({d.name for d in devices})
            raise SandboxNotFound(name, names)
        matches.sort(key=lambda d: (d.is_booted, _runtime_key(d.runtime)), reverse=True)
        chosen = matches[0]
        logger.info("Resolved simulator %r to %s (%s)", name, chosen.udid, chosen.runtime)
        return chosen

    def boot(self, device: SimulatorDevice) -> None:
        """
        Boot ``device`` and wait until it has finished starting.

        Booting an already booted device is not an error.

        Raises:
            SandboxBootFailed: If the device cannot be booted
        """
        if not device.is_booted:
            cmd = ["xcrun", "simctl", "boot", device.udid]
            result = self.runner.run(
                cmd,
                timeout=SIMCTL_BOOT_TIMEOUT_S,
                context=f"Booting simulator {device.name}",
            )
            if not result.ok:
                if ALREADY_BOOTED_MARKER in result.output:
                    logger.debug("Simulator %s already booted", device.udid)
                else:
                    raise SandboxBootFailed(
                        result.cmd, result.returncode, result.output,
                        context=f"Failed to boot simulator {device.name} ({device.udid})",
                    )

        cmd = ["xcrun", "simctl", "bootstatus", device.udid, "-b"]
        result = self.runner.run(
            cmd,
            timeout=SIMCTL_BOOTSTATUS_TIMEOUT_S,
            context=f"Waiting for simulator {device.name}",
        )
        if not result.ok:
            raise SandboxBootFailed(
                result.cmd, result.returncode, result.output,
                context=f"Simulator {device.name} ({device.udid}) did not finish booting",
            )
