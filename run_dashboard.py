#!/usr/bin/env python3
"""
Delivery Fleet - Dashboard Launcher
"""
import argparse
import logging
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from fleet.config import LOG_FORMAT, LOG_LEVEL  # noqa: E402
from dashboard.web_dashboard import start_dashboard  # noqa: E402


def main():
    parser = argparse.ArgumentParser(description="Delivery fleet dashboard")
    parser.add_argument(
        "--config", default="config/fleet_config.yaml", help="YAML configuration file"
    )
    parser.add_argument("--log-level", default=LOG_LEVEL)
    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper(), format=LOG_FORMAT)

    print("Delivery Fleet Engine")
    print("=" * 50)
    start_dashboard(config_path=args.config)


if __name__ == "__main__":
    main()
