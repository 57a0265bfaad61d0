"""CLI runner: one radar poll, optionally beta and parent detection for an alpha"""
import argparse
import asyncio
import json
import logging

from dotenv import load_dotenv
load_dotenv()

from logging_config import setup_logging
from engine.pipeline import Radar

logger = logging.getLogger(__name__)


async def main(alpha: str = None, wait: bool = False, as_json: bool = False):
    radar = Radar()
    try:
        logger.info("Beta Radar - Running one poll")
        logger.info("=" * 50)
        snapshot = await radar.refresh()
        logger.info("Live: %d  Cooling: %d  Positioning: %d  Dumped: %d",
                    len(snapshot.live), len(snapshot.cooling), len(snapshot.positioning), len(snapshot.dumped))
        for view in snapshot.live[:10]:
            logger.info("  $%s %+.1f%% vol $%s (momentum %s)",
                        view.token.symbol, view.token.price_change_24h, f"{view.token.volume_24h:,.0f}", view.score)
        for cluster in radar.szn():
            logger.info("Szn %s [%s] %d tokens, score %d",
                        cluster.label, cluster.heat.value, len(cluster.tokens), cluster.szn_score)

        if not alpha:
            if as_json:
                print(json.dumps(snapshot.to_dict(), indent=2))
            return

        result = await radar.detect_betas(alpha, wait=wait)
        if result is None:
            logger.error("Token %s not found", alpha)
            return
        logger.info("=" * 50)
        logger.info("Betas for $%s: %d%s", result.alpha.symbol, len(result.betas),
                    f" ({result.message})" if result.message else "")
        for beta in result.betas:
            logger.info("  $%s %s %s %s", beta.token.symbol, beta.signal.label,
                        beta.token_class.value if beta.token_class else "-", beta.wave_phase.value)

        parent = await radar.find_parent(alpha)
        if parent:
            logger.info("Parent: $%s (score %.2f)", parent.token.symbol, parent.score)

        if as_json:
            print(json.dumps({
                "snapshot": snapshot.to_dict(),
                "betas": result.to_dict(),
                "parent": parent.to_dict() if parent else None,
            }, indent=2))
    finally:
        await radar.aclose()


def cli():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--alpha", help="token address to run beta and parent detection for")
    parser.add_argument("--wait", action="store_true", help="wait for AI/vision enrichment")
    parser.add_argument("--json", action="store_true", help="print results as JSON")
    args = parser.parse_args()
    setup_logging()
    asyncio.run(main(args.alpha, args.wait, args.json))


if __name__ == "__main__":
    cli()
