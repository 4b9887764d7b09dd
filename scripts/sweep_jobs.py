"""Cron entrypoint for stuck-job recovery, manual reprocessing and job stats."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Ensure repo root is on sys.path so local imports resolve before site-packages.
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from coursegen.utils.env import default_env_path, load_env_file


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
  parser = argparse.ArgumentParser(description=__doc__)
  subparsers = parser.add_subparsers(dest="command", required=True)
  subparsers.add_parser("sweep", help="Requeue or fail stuck jobs and redeliver undelivered triggers.")
  reprocess = subparsers.add_parser("reprocess", help="Process every pending or processing job sequentially.")
  reprocess.add_argument("--limit", type=int, default=None, help="Maximum number of jobs to process.")
  subparsers.add_parser("stats", help="Print job counts for the last 24 hours.")
  return parser.parse_args(argv)


async def _run(args: argparse.Namespace) -> str:
  from coursegen.config import get_settings
  from coursegen.core.database import dispose_engine
  from coursegen.services import jobs as job_service

  settings = get_settings()
  try:
    if args.command == "sweep":
      result = await job_service.run_sweep(settings)
    elif args.command == "reprocess":
      result = await job_service.run_reprocess(settings, limit=args.limit)
    else:
      result = await job_service.get_job_stats(settings)
    return result.model_dump_json(by_alias=True, indent=2)
  finally:
    await dispose_engine()


def main(argv: list[str] | None = None) -> int:
  # Load env so cron runs mirror service startup configuration.
  load_env_file(default_env_path(), override=False)
  logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
  args = _parse_args(argv)
  print(asyncio.run(_run(args)))
  return 0


if __name__ == "__main__":
  raise SystemExit(main())
