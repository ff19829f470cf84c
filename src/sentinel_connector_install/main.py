#!/usr/bin/env python3
# Unless explicitly stated otherwise all files in this repository are licensed under the Apache-2 License.

# This product includes software developed at Datadog (https://www.datadoghq.com/) Copyright 2025 Datadog, Inc.


import argparse
import os
import sys
from typing import Optional

from az_shared.errors import UserActionRequiredError
from az_shared.logs import LOG_LEVELS, configure_logging, log, log_header

from .configuration import Configuration, load_configuration
from .constants import DEFAULT_CONFIG_PATH
from .provision import provision
from .reporter import build_report, print_report, write_report
from .session import connect


def parse_arguments(argv: Optional[list[str]] = None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Provision the Obsidian Security connector for Microsoft Sentinel in Azure Government (GCCH)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "-c",
        "--config",
        type=str,
        default=DEFAULT_CONFIG_PATH,
        help=f"Path to the JSON configuration file (default: {DEFAULT_CONFIG_PATH})",
    )

    parser.add_argument(
        "-i",
        "--interactive",
        action="store_true",
        help="Prompt for missing configuration values and save them back to the configuration file",
    )

    parser.add_argument(
        "--output-dir",
        type=str,
        default=None,
        help="Directory for the credential report (default: the configuration file's directory)",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=LOG_LEVELS,
        help="Set the log level (default: INFO)",
    )

    return parser.parse_args(argv)


def get_output_dir(config_path: str, output_dir: Optional[str]) -> str:
    return output_dir or os.path.dirname(os.path.abspath(config_path))


def install_connector(config: Configuration, output_dir: str) -> None:
    """Authenticate, provision every resource in order, then hand off the credentials."""

    log_header("Connecting to Azure Government...")
    session = connect(config)

    result = provision(session, config)

    log_header("Success! Obsidian Sentinel connector provisioning completed!")
    report = build_report(result.tenant_id, result.app_registration, result.dcr)
    print_report(report)
    write_report(report, output_dir)


def main(argv: Optional[list[str]] = None) -> int:
    """Main installation flow. Returns the process exit code."""

    args = parse_arguments(argv)
    configure_logging(args.log_level)

    try:
        log.info("Starting setup for the Obsidian Security Sentinel connector...")
        log_header("Loading configuration...")
        config = load_configuration(args.config, interactive=args.interactive)
        install_connector(config, get_output_dir(args.config, args.output_dir))
    except UserActionRequiredError as e:
        log.error(e.user_action_message)
        return 1
    except KeyboardInterrupt:
        log.error("Setup interrupted by user. Resources created so far are left in place; rerun to continue.")
        return 130
    except Exception as e:
        log.error(f"Failed with error: {e}")
        log.error("Check the Azure CLI output for more details. Rerunning is safe; completed steps are skipped.")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
