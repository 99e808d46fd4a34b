import logging
import os

import psutil

logger = logging.getLogger(__name__)


def log_system_status(
    active_sessions: int, sandbox_root: str | os.PathLike[str], include_process_rss: bool = True
) -> None:
    """Log session count and resource usage of the host and the sandbox volume."""
    try:
        vm = psutil.virtual_memory()
        du = psutil.disk_usage(str(sandbox_root))
        process_rss_mb: int | None = None
        if include_process_rss:
            try:
                process_rss_mb = psutil.Process().memory_info().rss // (1024**2)
            except psutil.Error:
                process_rss_mb = None

        msg = (
            f"Sessions={active_sessions} | RAM used={vm.percent:.1f}% "
            f"({vm.used // (1024**2)}MB/{vm.total // (1024**2)}MB) | "
            f"Sandbox disk used={du.percent:.1f}% "
            f"({du.used // (1024**3)}GB/{du.total // (1024**3)}GB)"
            + (
                f" | Process RSS={process_rss_mb}MB"
                if process_rss_mb is not None
                else ""
            )
        )
        logger.info(msg)
    except (OSError, psutil.Error) as exc:  # pragma: no cover
        logger.debug(f"Failed to log system status: {exc}")
