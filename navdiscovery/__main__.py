#!/usr/bin/env python3
"""
Navigation Discovery CLI
========================
Launches Chromium through Playwright, opens the URL and runs the strategy
orchestrator against the loaded page.  The browser lifecycle lives here
and only here; the engine itself receives an already-navigated page.

All configuration flows through ``DiscoveryRunConfig`` (``NAVDISCOVERY_*``
environment variables, then command-line flags).

Run with: python -m navdiscovery https://www.example.com
"""

import argparse
import asyncio
import json
import logging
import sys
import time
from pathlib import Path

from dotenv import load_dotenv
from playwright.async_api import async_playwright

from . import dom
from .errors import BrowserCrashedError, ConfigurationError, NavigationDiscoveryError
from .models import StrategyResult
from .orchestrator import StrategyOrchestrator
from .run_config import DiscoveryRunConfig

# Load .env before configuration is read
env_path = Path(__file__).resolve().parent.parent / '.env'
if env_path.exists():
    load_dotenv(env_path)
else:
    load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s | %(levelname)s | %(message)s',
    datefmt='%H:%M:%S'
)
logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Navigation Discovery - adaptive e-commerce navigation extraction',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m navdiscovery https://www.example.com
  python -m navdiscovery https://www.example.com --headed --output-json nav.json
  python -m navdiscovery https://shop.example.com --sector hardware --timeout 120
  python -m navdiscovery https://www.example.com --strategies adaptive,fallback_links
        """
    )
    parser.add_argument('url', help='Page whose navigation should be discovered')
    parser.add_argument('--headless', dest='headless', action='store_true', default=True,
                        help='Run the browser headless (default)')
    parser.add_argument('--headed', dest='headless', action='store_false',
                        help='Show the browser window')
    parser.add_argument('--mobile', action='store_true',
                        help='Open the page in a phone-sized viewport')
    parser.add_argument('--sector', type=str, help='Sector template: clothing, hardware, electronics, grocery')
    parser.add_argument('--redis-url', type=str, help='Redis URL for the hint cache (default: in-memory)')
    parser.add_argument('--timeout', type=float, help='Overall discovery deadline in seconds')
    parser.add_argument('--min-confidence', type=float, help='Sufficient-confidence threshold (default: 0.7)')
    parser.add_argument('--strategies', type=str, help='Comma-separated strategy order')
    parser.add_argument('--output-json', type=str, help='Write the result to this JSON file')
    parser.add_argument('--debug', action='store_true', help='Verbose per-trigger logging')
    return parser


def print_summary(result: StrategyResult):
    """Print discovery summary."""
    print("\n" + "=" * 65)
    print("DISCOVERY COMPLETE")
    print("=" * 65)
    print(f"  Strategy:            {result.strategy}")
    print(f"  Items:               {len(result.items)}")
    print(f"  Confidence:          {result.confidence:.2f}")
    if result.reason:
        print(f"  Reason:              {result.reason}")
    print(f"  Total time:          {result.metadata.get('elapsed_ms', 0) / 1000:.1f}s")
    for attempt in result.metadata.get('attempts', []):
        print(
            f"    {attempt['strategy']:<16} {attempt['status']:<8} "
            f"{attempt['item_count']:>4} items  {attempt['confidence']:.2f}"
            + (f"  ({attempt['reason']})" if attempt.get('reason') else "")
        )
    print("-" * 65)
    for item in result.items[:40]:
        indent = "  " * item.hierarchy_level
        print(f"{indent}{item.name}  {item.url or ''}")
    if len(result.items) > 40:
        print(f"  ... {len(result.items) - 40} more")
    print("=" * 65)


async def run_discovery(url: str, cfg: DiscoveryRunConfig, headless: bool = True, mobile: bool = False) -> StrategyResult:
    viewport = (
        {'width': cfg.mobile_width, 'height': cfg.mobile_height}
        if mobile else {'width': cfg.desktop_width, 'height': cfg.desktop_height}
    )
    orchestrator = StrategyOrchestrator(cfg)
    async with async_playwright() as p:
        browser = await p.chromium.launch(headless=headless)
        try:
            context = await browser.new_context(
                viewport=viewport,
                user_agent=None if mobile else cfg.desktop_user_agent,
                is_mobile=mobile,
                has_touch=mobile,
            )
            page = await context.new_page()
            logger.info(f"[CLI] opening {url}")
            await dom.guarded(
                f"goto {url}",
                page.goto(url, wait_until='domcontentloaded', timeout=cfg.navigation_timeout_ms),
                cfg.navigation_timeout_ms,
            )
            return await orchestrator.discover(page, url)
        finally:
            await orchestrator.close()
            await browser.close()


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    if args.debug:
        logging.getLogger('navdiscovery').setLevel(logging.DEBUG)

    url = args.url
    if not url.startswith(('http://', 'https://')):
        url = 'https://' + url

    try:
        cfg = DiscoveryRunConfig.from_cli_args(args)
    except ConfigurationError as exc:
        logger.error(f"Invalid configuration: {exc}")
        return 2
    cfg.log_summary(url)

    start_time = time.time()
    try:
        result = asyncio.run(run_discovery(url, cfg, headless=args.headless, mobile=args.mobile))
    except BrowserCrashedError as exc:
        logger.error(f"Browser crashed during discovery: {exc}")
        return 1
    except NavigationDiscoveryError as exc:
        logger.error(f"Discovery failed: {exc}")
        return 1
    logger.info(f"Finished in {time.time() - start_time:.1f}s")

    print_summary(result)
    if args.output_json:
        Path(args.output_json).write_text(json.dumps(result.to_dict(), indent=2, default=str), encoding='utf-8')
        print(f"  Exported: {args.output_json}")
    return 0 if result.items else 1


if __name__ == '__main__':
    sys.exit(main())
