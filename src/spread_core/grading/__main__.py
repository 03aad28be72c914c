"""Allow running the grader as: python -m spread_core.grading [--config path]."""

import argparse

from spread_core.grading.runner import main

parser = argparse.ArgumentParser(description="Scheduled event grading")
parser.add_argument("--config", default=None, help="Path to config.yaml")
args = parser.parse_args()
main(config_path=args.config)
