"""
Command-line interface: mirror one site into a ZIP archive.
"""

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path

from tqdm import tqdm

from site_mirror.config import (
    DEFAULT_DEPTH,
    DEFAULT_MAX_SIZE,
    DEFAULT_STORE_DIR,
    MAX_DEPTH,
    MAX_MAX_SIZE,
    Settings,
)
from site_mirror.core.jobs import JobStatus
from site_mirror.errors import ValidationError
from site_mirror.service import MirrorService
from site_mirror.utils.log import log, setup_logging


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Mirror the pages of a website reachable within a depth "
                    "limit, plus their assets, into a ZIP archive.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  python -m site_mirror https://example.com\n"
            "  python -m site_mirror https://example.com --depth 3 --no-scripts\n"
            "  python -m site_mirror https://spa.example.com --render\n"
        ),
    )
    parser.add_argument(
        "url",
        help="Start URL (e.g. https://example.com)",
    )
    parser.add_argument(
        "--depth", type=int, default=DEFAULT_DEPTH,
        help=f"Link levels to follow, 1-{MAX_DEPTH} (default: {DEFAULT_DEPTH})",
    )
    parser.add_argument(
        "--max-size", type=int, default=DEFAULT_MAX_SIZE,
        help=f"Page size budget in tenths of a MiB, up to {MAX_MAX_SIZE} "
             f"(default: {DEFAULT_MAX_SIZE})",
    )
    parser.add_argument(
        "--no-images", dest="include_images", action="store_false", default=True,
        help="Do not download images and media",
    )
    parser.add_argument(
        "--no-styles", dest="include_styles", action="store_false", default=True,
        help="Do not download stylesheets and fonts",
    )
    parser.add_argument(
        "--no-scripts", dest="include_scripts", action="store_false", default=True,
        help="Do not download scripts",
    )
    parser.add_argument(
        "--render", action="store_true", default=False,
        help="Render pages in headless Chromium before saving them",
    )
    parser.add_argument(
        "--output", default=None,
        help=f"Artifact directory (default: $SITE_MIRROR_STORE or {DEFAULT_STORE_DIR})",
    )
    parser.add_argument(
        "--debug", action="store_true",
        help="Enable verbose debug logging",
    )
    parser.add_argument(
        "--log-file",
        help="Write detailed logs to this file (always at DEBUG level)",
    )
    return parser.parse_args(argv)


async def run(args: argparse.Namespace) -> int:
    settings = Settings.from_env()
    if args.output:
        settings.store_dir = Path(args.output)

    options = {
        "depth": args.depth,
        "maxSize": args.max_size,
        "includeImages": args.include_images,
        "includeStyles": args.include_styles,
        "includeScripts": args.include_scripts,
        "renderJavaScript": args.render,
    }

    async with MirrorService(settings) as service:
        try:
            job_id = service.start_job(args.url, options)
        except ValidationError as exc:
            log.error("%s", exc)
            return 2

        final = None
        bar = tqdm(total=100, desc="Mirroring", unit="%", dynamic_ncols=True,
                   bar_format="{l_bar}{bar}| {n}/{total} [{elapsed}] {postfix}")
        try:
            async with service.subscribe(job_id) as updates:
                async for snapshot in updates:
                    bar.n = snapshot.progress
                    bar.set_postfix(status=snapshot.status.value,
                                    files=snapshot.files_downloaded)
                    bar.refresh()
                    final = snapshot
        except asyncio.CancelledError:
            service.cancel(job_id)
            await service.wait(job_id)
            raise
        finally:
            bar.close()

    if final is None:
        return 1
    if final.status is JobStatus.COMPLETED:
        zip_path = settings.store_dir / f"{job_id}.zip"
        log.info("Archive written: %s (%d files)", zip_path.resolve(), final.files_downloaded)
        return 0
    if final.status is JobStatus.CANCELLED:
        log.warning("Job cancelled")
        return 130
    log.error("Job failed: %s", final.error)
    return 1


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    setup_logging(debug=args.debug, log_file=args.log_file)
    if args.debug:
        logging.getLogger("urllib3").setLevel(logging.DEBUG)

    t0 = time.monotonic()
    try:
        code = asyncio.run(run(args))
    except KeyboardInterrupt:
        log.warning("Interrupted")
        code = 130
    log.info("Total elapsed time: %.1f s", time.monotonic() - t0)
    return code


if __name__ == "__main__":
    sys.exit(main())
