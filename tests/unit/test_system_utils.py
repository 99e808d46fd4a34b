"""
Unit tests for System Utils

Tests the resource status line logged when sessions are opened.
"""

from unittest.mock import MagicMock, patch

import psutil

from mcp_server_folder.system_utils import log_system_status


class TestSystemUtils:
    """Test suite for system utilities."""

    def test_log_system_status_success(self, tmp_path):
        """Test the status line carries sessions, RAM, sandbox disk and RSS."""
        with (
            patch("psutil.virtual_memory") as mock_vm,
            patch("psutil.disk_usage") as mock_du,
            patch("psutil.Process") as mock_process,
            patch("mcp_server_folder.system_utils.logger") as mock_logger,
        ):
            mock_vm.return_value.percent = 75.5
            mock_vm.return_value.used = 8 * 1024**3
            mock_vm.return_value.total = 16 * 1024**3

            mock_du.return_value.percent = 60.0
            mock_du.return_value.used = 100 * 1024**3
            mock_du.return_value.total = 500 * 1024**3

            mock_process_instance = MagicMock()
            mock_process_instance.memory_info.return_value.rss = 512 * 1024**2
            mock_process.return_value = mock_process_instance

            log_system_status(3, tmp_path)

            mock_du.assert_called_once_with(str(tmp_path))
            mock_logger.info.assert_called_once()
            log_message = mock_logger.info.call_args[0][0]
            assert "Sessions=3" in log_message
            assert "RAM used=75.5%" in log_message
            assert "Sandbox disk used=60.0%" in log_message
            assert "Process RSS=512MB" in log_message

    def test_log_system_status_without_process_rss(self, tmp_path):
        with (
            patch("psutil.virtual_memory") as mock_vm,
            patch("psutil.disk_usage") as mock_du,
            patch("psutil.Process") as mock_process,
            patch("mcp_server_folder.system_utils.logger") as mock_logger,
        ):
            mock_vm.return_value.percent = 10.0
            mock_vm.return_value.used = mock_vm.return_value.total = 1024**3
            mock_du.return_value.percent = 20.0
            mock_du.return_value.used = mock_du.return_value.total = 1024**3

            log_system_status(0, tmp_path, include_process_rss=False)

            mock_process.assert_not_called()
            assert "Process RSS" not in mock_logger.info.call_args[0][0]

    def test_psutil_failure_is_not_raised(self, tmp_path):
        """Test a monitoring failure never breaks request handling."""
        with (
            patch("psutil.virtual_memory", side_effect=psutil.Error("boom")),
            patch("mcp_server_folder.system_utils.logger") as mock_logger,
        ):
            log_system_status(1, tmp_path)
            mock_logger.info.assert_not_called()
            mock_logger.debug.assert_called_once()
