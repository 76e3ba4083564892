"""
Tests for the Chrome launcher and DevTools health checks. Processes,
psutil and HTTP are mocked.
"""

import os
import subprocess
from unittest.mock import Mock, patch

import psutil
import pytest
import requests

from conftest import RecordingSleep
from core.exceptions import ProcessStartFailure
from infra.health import check_devtools_health, wait_for_devtools
from infra.launcher import BrowserHandle, ChromeLauncher


def fake_proc(pid, name, kill_error=None):
    proc = Mock()
    proc.info = {"pid": pid, "name": name}
    if kill_error:
        proc.kill.side_effect = kill_error
    return proc


class TestHealth:
    def test_healthy_endpoint(self):
        with patch("infra.health.requests.get", return_value=Mock(status_code=200)) as get:
            assert check_devtools_health("127.0.0.1", 9222) is True
        assert get.call_args.args[0] == "http://127.0.0.1:9222/json/version"

    def test_connection_refused(self):
        with patch("infra.health.requests.get", side_effect=requests.ConnectionError("refused")):
            assert check_devtools_health("127.0.0.1", 9222) is False

    def test_error_status(self):
        with patch("infra.health.requests.get", return_value=Mock(status_code=500)):
            assert check_devtools_health("127.0.0.1", 9222) is False

    def test_wait_polls_until_healthy(self):
        sleep = RecordingSleep()
        with patch("infra.health.check_devtools_health", side_effect=[False, False, True]):
            assert wait_for_devtools("127.0.0.1", 9222, poll_interval=0.5, max_retries=5, sleep=sleep)
        assert sleep.calls == [0.5, 0.5]

    def test_wait_gives_up_after_max_retries(self):
        sleep = RecordingSleep()
        with patch("infra.health.check_devtools_health", return_value=False) as health:
            assert not wait_for_devtools("127.0.0.1", 9222, poll_interval=0.5, max_retries=3, sleep=sleep)
        assert health.call_count == 3
        assert len(sleep.calls) == 2

    def test_wait_stops_when_process_died(self):
        with patch("infra.health.check_devtools_health") as health:
            assert not wait_for_devtools("127.0.0.1", 9222, is_alive=lambda: False, sleep=RecordingSleep())
        health.assert_not_called()


class TestChromeLauncher:
    def test_build_command(self):
        launcher = ChromeLauncher()

        cmd = launcher.build_command("/usr/bin/chromium", ("--headless",), 9222, "/tmp/profile")

        assert cmd == [
            "/usr/bin/chromium",
            "--remote-debugging-port=9222",
            "--user-data-dir=/tmp/profile",
            "--headless",
            "about:blank",
        ]

    def test_missing_binary(self):
        with patch("infra.launcher.find_chrome_binary", return_value=None):
            with pytest.raises(ProcessStartFailure, match="CHROME_PATH"):
                ChromeLauncher().launch(("--headless",), 9222)

    def test_launch_returns_handle(self, tmp_path):
        process = Mock(pid=4242)
        process.poll.return_value = None
        launcher = ChromeLauncher(chrome_path="/usr/bin/chromium", user_data_dir=str(tmp_path))

        with patch("infra.launcher.check_port_open", return_value=False), \
                patch("infra.launcher.subprocess.Popen", return_value=process) as popen, \
                patch("infra.launcher.wait_for_devtools", return_value=True):
            handle = launcher.launch(("--headless",), 9333, "127.0.0.1")

        assert handle.pid == 4242
        assert handle.endpoint == "127.0.0.1:9333"
        assert not handle.owns_profile
        assert f"--user-data-dir={tmp_path}" in popen.call_args.args[0]

    def test_early_exit_is_start_failure(self, tmp_path):
        process = Mock(pid=4242)
        process.poll.return_value = 1
        launcher = ChromeLauncher(chrome_path="/usr/bin/chromium", user_data_dir=str(tmp_path))

        with patch("infra.launcher.check_port_open", return_value=False), \
                patch("infra.launcher.subprocess.Popen", return_value=process), \
                patch("infra.launcher.wait_for_devtools", return_value=False):
            with pytest.raises(ProcessStartFailure, match="exited during startup"):
                launcher.launch(("--headless",), 9222)

    def test_unreachable_endpoint_is_start_failure(self, tmp_path):
        process = Mock(pid=4242)
        process.poll.return_value = None
        process.wait.return_value = 0
        launcher = ChromeLauncher(chrome_path="/usr/bin/chromium", user_data_dir=str(tmp_path))

        with patch("infra.launcher.check_port_open", return_value=False), \
                patch("infra.launcher.subprocess.Popen", return_value=process), \
                patch("infra.launcher.wait_for_devtools", return_value=False):
            with pytest.raises(ProcessStartFailure, match="never became reachable"):
                launcher.launch(("--headless",), 9222)
        process.terminate.assert_called_once()

    def test_popen_error_removes_throwaway_profile(self, tmp_path):
        profile = tmp_path / "profile"
        profile.mkdir()
        launcher = ChromeLauncher(chrome_path="/nonexistent/chrome")

        with patch("infra.launcher.check_port_open", return_value=False), \
                patch("infra.launcher.tempfile.mkdtemp", return_value=str(profile)), \
                patch("infra.launcher.subprocess.Popen", side_effect=FileNotFoundError("chrome")):
            with pytest.raises(ProcessStartFailure):
                launcher.launch(("--headless",), 9222)
        assert not profile.exists()

    def test_terminate_by_role(self):
        own = fake_proc(os.getpid(), "python")
        chrome = fake_proc(100, "chrome")
        shell = fake_proc(101, "headless_shell")
        editor = fake_proc(102, "vim")
        gone = fake_proc(103, "chromium", kill_error=psutil.NoSuchProcess(103))
        denied = fake_proc(104, "Google Chrome", kill_error=psutil.AccessDenied(104))

        with patch("infra.launcher.psutil.process_iter", return_value=[own, chrome, shell, editor, gone, denied]):
            killed = ChromeLauncher().terminate_by_role()

        assert killed == 2
        chrome.kill.assert_called_once()
        shell.kill.assert_called_once()
        editor.kill.assert_not_called()
        own.kill.assert_not_called()


class TestBrowserHandle:
    def test_kill_terminates_and_removes_owned_profile(self, tmp_path):
        profile = tmp_path / "profile"
        profile.mkdir()
        process = Mock()
        process.poll.return_value = None
        handle = BrowserHandle(process=process, host="127.0.0.1", port=9222,
                               profile_dir=str(profile), owns_profile=True)

        handle.kill(timeout=1.0)

        process.terminate.assert_called_once()
        process.wait.assert_called_once_with(timeout=1.0)
        assert not profile.exists()

    def test_kill_escalates_when_terminate_times_out(self, tmp_path):
        process = Mock()
        process.poll.return_value = None
        process.wait.side_effect = [subprocess.TimeoutExpired("chrome", 1.0), 0]
        handle = BrowserHandle(process=process, host="127.0.0.1", port=9222,
                               profile_dir=str(tmp_path), owns_profile=False)

        handle.kill(timeout=1.0)

        process.kill.assert_called_once()
        assert tmp_path.exists()

    def test_kill_of_exited_process_is_noop(self):
        process = Mock()
        process.poll.return_value = 0
        handle = BrowserHandle(process=process, host="127.0.0.1", port=9222)

        handle.kill()

        process.terminate.assert_not_called()
