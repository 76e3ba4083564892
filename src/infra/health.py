#!/usr/bin/env python3
"""
Health check module for the page-load benchmarking tool.

Provides checks used to verify that the browser's DevTools endpoint is
responsive before measurements are sent to it.
"""

import socket
import time
from typing import Callable, Optional

import requests


def check_devtools_health(host: str, port: int, timeout: float = 2.0) -> bool:
    """
    Check if a browser DevTools HTTP endpoint is answering.

    Args:
        host: Host the browser listens on
        port: Remote debugging port
        timeout: Request timeout in seconds

    Returns:
        True if /json/version returned a 2xx response, False otherwise.
        Never raises.
    """
    url = f"http://{host}:{port}/json/version"
    try:
        response = requests.get(url, timeout=timeout)
    except requests.RequestException:
        return False
    return 200 <= response.status_code < 300


def check_port_open(host: str, port: int, timeout: float = 1.0) -> bool:
    """Return True if something accepts TCP connections on host:port."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


def wait_for_devtools(
    host: str,
    port: int,
    poll_interval: float = 0.5,
    max_retries: int = 50,
    is_alive: Optional[Callable[[], bool]] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """
    Poll the DevTools endpoint until it answers.

    Args:
        host: Host the browser listens on
        port: Remote debugging port
        poll_interval: Delay between checks in seconds
        max_retries: Maximum number of checks
        is_alive: Optional callable; polling stops early when it returns False
        sleep: Sleep function (injectable for tests)

    Returns:
        True if the endpoint became healthy, False otherwise
    """
    for attempt in range(max_retries):
        if is_alive is not None and not is_alive():
            return False
        if check_devtools_health(host, port, timeout=max(poll_interval, 0.5)):
            return True
        if attempt < max_retries - 1:
            sleep(poll_interval)
    return False
