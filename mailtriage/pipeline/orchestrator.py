"""One triage cycle: fetch, classify, reply, label, mark read."""
import asyncio
import logging
from typing import List, Optional

from mailtriage.config import TRIAGE_BATCH_SIZE
from mailtriage.errors import AuthError, ClassificationError, TransportError
from mailtriage.gmail.reply import compose_reply
from mailtriage.models import Category, Message, ProcessedEmail, StepResult

logger = logging.getLogger(__name__)


class TriageOrchestrator:
    """
    Drives a batch of unread messages through the triage pipeline.

    Stages run in order with a barrier between them; work inside a stage
    runs concurrently per message in worker threads. Failures are scoped
    to the message and step they happened in. An authorization failure
    while loading credentials, listing or fetching refreshes the token
    and restarts the cycle once.

    Delivery is at-least-once: messages are marked read last, so a crash
    mid-cycle leaves them unread and they are picked up again.
    """

    def __init__(
        self,
        authenticator,
        transport,
        classifier,
        labels,
        batch_size: int = TRIAGE_BATCH_SIZE,
    ):
        self.authenticator = authenticator
        self.transport = transport
        self.classifier = classifier
        self.labels = labels
        self.batch_size = batch_size

    async def run_cycle(self) -> List[ProcessedEmail]:
        """Process one batch. Never raises; failures are logged."""
        for attempt in range(2):
            try:
                return await self._run_once()
            except AuthError as e:
                if attempt:
                    logger.error(f"Authorization still failing after token refresh: {e}")
                    return []
                logger.info("Token expired or invalid. Attempting to refresh...")
                try:
                    await asyncio.to_thread(self.authenticator.refresh)
                except Exception as refresh_error:
                    logger.error(f"Failed to refresh token: {refresh_error}")
                    return []
            except TransportError as e:
                logger.error(f"Error fetching emails: {e}")
                return []
            except Exception:
                logger.exception("Unexpected error during triage cycle")
                return []
        return []

    async def _run_once(self) -> List[ProcessedEmail]:
        await asyncio.to_thread(self.authenticator.load_credentials)

        ids = await asyncio.to_thread(self.transport.list_unread, self.batch_size)
        if not ids:
            logger.info("No unseen emails found.")
            return []

        fetched = await asyncio.gather(*(self._fetch(i) for i in ids), return_exceptions=True)
        auth_errors = [r for r in fetched if isinstance(r, AuthError)]
        if auth_errors:
            raise auth_errors[0]
        messages = [m for m in fetched if isinstance(m, Message)]

        categories = await asyncio.gather(*(self._classify(m) for m in messages))
        processed = [ProcessedEmail(message=m, category=c) for m, c in zip(messages, categories)]

        await asyncio.gather(*(self._reply_and_label(p) for p in processed))
        await asyncio.gather(*(self._mark_read(p) for p in processed))
        return processed

    async def _fetch(self, message_id: str) -> Optional[Message]:
        try:
            return await asyncio.to_thread(self.transport.get_message, message_id)
        except AuthError:
            raise
        except Exception as e:
            logger.error(f"Error processing message {message_id}: {e}")
            return None

    async def _classify(self, message: Message) -> Category:
        try:
            category = await asyncio.to_thread(self.classifier.classify, message.body)
        except ClassificationError as e:
            logger.warning(f"Classification failed for {message.id}, using {Category.OTHER}: {e}")
            return Category.OTHER
        except Exception as e:
            logger.exception(f"Unexpected classifier error for {message.id}: {e}")
            return Category.OTHER
        logger.info(f"Classified {message.id} from {message.sender} as {category}")
        return category

    async def _reply_and_label(self, item: ProcessedEmail) -> None:
        item.reply = await self._send_reply(item.message, item.category)
        item.label = await self._apply_label(item.message, item.category)

    async def _send_reply(self, message: Message, category: Category) -> StepResult:
        try:
            raw = compose_reply(message, category)
            await asyncio.to_thread(self.transport.send_raw, raw, message.thread_id)
        except Exception as e:
            logger.error(f"Failed to reply to {message.sender}: {e}")
            return StepResult.failure(e)
        logger.info(f"Replied to {message.sender} with category: {category}")
        return StepResult.success()

    async def _apply_label(self, message: Message, category: Category) -> StepResult:
        try:
            await asyncio.to_thread(self.labels.apply_label, message.id, category.value)
        except Exception as e:
            logger.error(f"Failed to move email {message.id} to label {category}: {e}")
            return StepResult.failure(e)
        return StepResult.success()

    async def _mark_read(self, item: ProcessedEmail) -> None:
        if not item.label.ok:
            item.marked_read = StepResult(ok=False, error="skipped: labeling failed")
            logger.warning(f"Leaving {item.message.id} unread because labeling failed")
            return
        try:
            await asyncio.to_thread(self.transport.mark_as_read, item.message.id)
        except Exception as e:
            logger.error(f"Failed to mark email {item.message.id} as read: {e}")
            item.marked_read = StepResult.failure(e)
            return
        logger.info(f"Marked email from {item.message.sender} as read.")
        item.marked_read = StepResult.success()
