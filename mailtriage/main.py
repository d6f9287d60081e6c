"""Main entry point for the mail triage poller."""
import argparse
import asyncio
import logging

from mailtriage.config import LOG_LEVEL, POLL_INTERVAL_MS
from mailtriage.gmail import Authenticator, Classifier, GmailClient, LabelManager
from mailtriage.llm import LLMClient
from mailtriage.pipeline import TriageOrchestrator
from mailtriage.scheduler import Poller

logger = logging.getLogger(__name__)


def setup_logging(level: str = LOG_LEVEL):
    """Configure root logging for the process."""
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logging.getLogger("googleapiclient.discovery_cache").setLevel(logging.ERROR)


def build_orchestrator() -> TriageOrchestrator:
    """Wire the pipeline's collaborators together."""
    authenticator = Authenticator()
    transport = GmailClient(authenticator)
    llm_client = LLMClient()
    return TriageOrchestrator(
        authenticator=authenticator,
        transport=transport,
        classifier=Classifier(llm_client.complete),
        labels=LabelManager(transport),
    )


async def run(interval_ms: int):
    poller = Poller(build_orchestrator(), interval_ms=interval_ms)
    poller.start()
    try:
        await asyncio.Event().wait()
    finally:
        poller.stop()


def main(argv=None):
    """Run the poller until interrupted."""
    parser = argparse.ArgumentParser(description="Triage unread Gmail messages on a fixed interval.")
    parser.add_argument(
        "--interval-ms",
        type=int,
        default=POLL_INTERVAL_MS,
        help=f"poll interval in milliseconds (default: {POLL_INTERVAL_MS})",
    )
    args = parser.parse_args(argv)
    if args.interval_ms <= 0:
        parser.error("--interval-ms must be positive")

    setup_logging()
    logger.info("Mail triage is online")
    try:
        asyncio.run(run(args.interval_ms))
    except KeyboardInterrupt:
        logger.info("Shutting down")


if __name__ == "__main__":
    main()
