"""Reconcile generated schedules with professional availability.

Usage:
    python -m backend.generate_schedules [--professional-id ID]
"""
import argparse
import sys

from backend.core import config
from backend.core.logging import configure_logging
from backend.scheduling.tasks import run_schedule_generation


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument('--professional-id', default=None, help='Only reconcile this professional.')
    args = parser.parse_args(argv)

    configure_logging()
    config.validate_runtime_config()

    result = run_schedule_generation(args.professional_id)
    if not result.success:
        print(f"Schedule generation failed: {result.error}", file=sys.stderr)
        return 1
    print(result.message)
    return 0


if __name__ == "__main__":
    sys.exit(main())
