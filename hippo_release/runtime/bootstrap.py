# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Runtime bootstrap for hippo-release.

The one-time setup every CLI command goes through before doing real work:
  1. Validate the environment (Python version)
  2. Apply the configured log level and log file to every package logger
  3. Log what we're running on
"""

from pathlib import Path

from hippo_release.config.schema import GlobalConfig
from hippo_release.logging.logger import configure_package_logging, get_logger
from hippo_release.runtime.environment import check_minimum_python, get_system_info


def bootstrap(config: GlobalConfig) -> None:
    """
    Run the bootstrap sequence.

    Args:
        config: The validated global configuration.
    """
    check_minimum_python()

    log_file = Path(config.log_file) if config.log_file is not None else None
    configure_package_logging(config.log_level, log_file)

    logger = get_logger("hippo_release.runtime", log_level=config.log_level, log_file=log_file)

    system_info = get_system_info()
    logger.debug(
        "hippo-release bootstrap complete",
        extra={
            "python_version": system_info.python_version,
            "platform": system_info.platform,
            "architecture": system_info.architecture,
        },
    )
