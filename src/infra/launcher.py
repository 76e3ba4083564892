#!/usr/bin/env python3
"""
Browser launcher for the page-load benchmarking tool.

Starts a headless Chrome with a remote debugging port and gives back a
handle that can kill it again. Also provides best-effort OS-level cleanup
of stray browser processes so a new launch never collides with an old
debugging port.
"""

import logging
import os
import shutil
import subprocess
import sys
import tempfile
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

import psutil

from core.exceptions import ProcessStartFailure
from infra.health import check_port_open, wait_for_devtools

logger = logging.getLogger("pageload.launcher")

CHROME_CANDIDATES = {
    "darwin": [
        "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
        "/Applications/Chromium.app/Contents/MacOS/Chromium",
    ],
    "linux": [
        "/usr/bin/google-chrome",
        "/usr/bin/google-chrome-stable",
        "/usr/bin/chromium",
        "/usr/bin/chromium-browser",
        "/snap/bin/chromium",
    ],
    "win32": [
        "C:\\Program Files\\Google\\Chrome\\Application\\chrome.exe",
        "C:\\Program Files (x86)\\Google\\Chrome\\Application\\chrome.exe",
    ],
}

# Process names treated as "the browser role" by terminate_by_role()
ROLE_NAMES = ("chrome", "chromium", "google-chrome", "headless_shell")


def find_chrome_binary() -> Optional[str]:
    """Find a Chrome/Chromium binary on this system."""
    for path in CHROME_CANDIDATES.get(sys.platform, []):
        if os.path.exists(path):
            return path
    for name in ("google-chrome", "google-chrome-stable", "chromium", "chromium-browser", "chrome"):
        found = shutil.which(name)
        if found:
            return found
    return None


@dataclass
class BrowserHandle:
    """A launched browser process and the endpoint it serves DevTools on."""

    process: subprocess.Popen
    host: str
    port: int
    profile_dir: Optional[str] = None
    owns_profile: bool = False

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def endpoint(self) -> str:
        return f"{self.host}:{self.port}"

    def is_alive(self) -> bool:
        return self.process.poll() is None

    def kill(self, timeout: float = 5.0) -> None:
        """
        Terminate the browser politely, then forcefully.

        Raises:
            OSError or subprocess.TimeoutExpired if the process could not be
            reaped. The throwaway profile is removed either way.
        """
        try:
            if self.is_alive():
                self.process.terminate()
                try:
                    self.process.wait(timeout=timeout)
                except subprocess.TimeoutExpired:
                    self.process.kill()
                    self.process.wait(timeout=timeout)
        finally:
            if self.owns_profile and self.profile_dir:
                shutil.rmtree(self.profile_dir, ignore_errors=True)


@dataclass
class ChromeLauncher:
    """
    Launches Chrome for measurement.

    Each launch gets a throwaway profile directory unless user_data_dir is
    set, so no persistent storage survives a restart.
    """

    chrome_path: Optional[str] = None
    user_data_dir: Optional[str] = None
    connection_poll_interval: float = 0.5
    max_connection_retries: int = 50
    role_names: Sequence[str] = field(default_factory=lambda: ROLE_NAMES)
    sleep: Callable[[float], None] = time.sleep

    def build_command(self, binary: str, flags: Sequence[str], port: int, profile_dir: str) -> List[str]:
        return [
            binary,
            f"--remote-debugging-port={port}",
            f"--user-data-dir={profile_dir}",
            *flags,
            "about:blank",
        ]

    def launch(self, flags: Sequence[str], port: int, host: str = "127.0.0.1") -> BrowserHandle:
        """
        Launch Chrome and wait until its DevTools endpoint answers.

        Raises:
            ProcessStartFailure: If no binary is found, the process exits
                early, or the endpoint never becomes reachable
        """
        binary = self.chrome_path or find_chrome_binary()
        if not binary:
            raise ProcessStartFailure("Chrome binary not found (set CHROME_PATH)")

        if check_port_open(host, port):
            logger.warning("Port %d is already in use before launch", port)

        owns_profile = self.user_data_dir is None
        profile_dir = tempfile.mkdtemp(prefix="pageload-chrome-") if owns_profile else self.user_data_dir
        cmd = self.build_command(binary, flags, port, profile_dir)

        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            if owns_profile:
                shutil.rmtree(profile_dir, ignore_errors=True)
            raise ProcessStartFailure(f"Failed to launch {binary}: {e}") from e

        handle = BrowserHandle(
            process=process,
            host=host,
            port=port,
            profile_dir=profile_dir,
            owns_profile=owns_profile,
        )

        ready = wait_for_devtools(
            host,
            port,
            poll_interval=self.connection_poll_interval,
            max_retries=self.max_connection_retries,
            is_alive=handle.is_alive,
            sleep=self.sleep,
        )
        if not ready:
            exit_code = process.poll()
            try:
                handle.kill(timeout=2.0)
            except (OSError, subprocess.TimeoutExpired) as e:
                logger.warning("Could not reap failed browser launch (pid %d): %s", process.pid, e)
            if exit_code is not None:
                raise ProcessStartFailure(f"Chrome exited during startup with code {exit_code}")
            raise ProcessStartFailure(f"DevTools endpoint {host}:{port} never became reachable")

        logger.debug("Chrome pid %d listening on %s", process.pid, handle.endpoint)
        return handle

    def _matches_role(self, proc: psutil.Process) -> bool:
        name = (proc.info.get("name") or "").lower()
        return any(role in name for role in self.role_names)

    def terminate_by_role(self) -> int:
        """
        Kill every process whose name looks like a browser.

        Best effort: processes that vanish or cannot be signalled are skipped.

        Returns:
            Number of processes signalled
        """
        own_pid = os.getpid()
        killed = 0
        for proc in psutil.process_iter(["pid", "name"]):
            try:
                if proc.info["pid"] == own_pid or not self._matches_role(proc):
                    continue
                proc.kill()
                killed += 1
            except (psutil.NoSuchProcess, psutil.AccessDenied):
                continue
        if killed:
            logger.info("Terminated %d stray browser process(es)", killed)
        return killed
