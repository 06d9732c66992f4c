"""
Webhook verification and event routing.
"""

import hashlib
import hmac
import logging
from typing import Optional

from monosync.models import PRRef
from monosync.sync.service import (
    ALL_ASPECTS,
    COMMITS,
    DISABLE_SYNC_LABEL,
    META,
    STATE,
    STATUSES,
    SyncService,
)
from monosync.sync.statuses import is_sync_status_context
from monosync.taskqueue import Throttle

logger = logging.getLogger(__name__)

PULL_REQUEST_ASPECTS = {
    "opened": ALL_ASPECTS,
    "synchronize": (COMMITS, STATE, STATUSES),
    "edited": (META,),
    "closed": (STATE,),
    "reopened": (STATE,),
}


class WebhookHandler:
    """
    Handles GitHub webhook deliveries.

    Provides:
    - Verifying webhook signatures
    - Routing events to the sync service
    - Throttling bursts of ``status`` events per commit
    """

    def __init__(
        self,
        service: SyncService,
        webhook_secret: Optional[str] = None,
        allow_insecure: bool = False,
        status_throttle: float = 10.0,
    ):
        """
        Initialize webhook handler.

        Args:
            service: Sync service events are routed to
            webhook_secret: Secret for HMAC signature
            allow_insecure: Allow unsigned webhooks (NOT recommended for production)
            status_throttle: Seconds to coalesce status events of one commit
        """
        self.service = service
        self.webhook_secret = webhook_secret
        self.allow_insecure = allow_insecure
        self.throttle = Throttle(status_throttle)

    def generate_signature(self, payload: bytes) -> str:
        """
        Generate HMAC-SHA256 signature for payload.

        Args:
            payload: Raw payload bytes

        Returns:
            Signature string in format "sha256=<hex>"
        """
        if not self.webhook_secret:
            return ""

        return "sha256=" + hmac.new(
            self.webhook_secret.encode(),
            payload,
            hashlib.sha256,
        ).hexdigest()

    def verify_signature(self, payload: bytes, signature: Optional[str]) -> bool:
        """
        Verify webhook signature using HMAC-SHA256.

        Args:
            payload: Raw request body
            signature: X-Hub-Signature-256 header value

        Returns:
            True if signature is valid
        """
        if not self.webhook_secret:
            if self.allow_insecure:
                logger.warning("No webhook_secret configured - signature verification skipped")
                return True
            logger.error("No webhook_secret configured - rejecting webhook")
            return False

        expected = self.generate_signature(payload)
        return hmac.compare_digest(expected, signature or "")

    async def _sent_by_bot(self, payload: dict) -> bool:
        sender = (payload.get("sender") or {}).get("login")
        return bool(sender) and sender == await self.service.client.get_login()

    async def handle(self, event: str, payload: dict) -> bool:
        """
        Route one webhook event.

        Errors are logged here and not re-raised; GitHub doesn't redeliver
        failed webhooks, so there is nothing to gain from failing the request.

        Args:
            event: X-GitHub-Event header value
            payload: Parsed JSON payload

        Returns:
            True unless handling the event failed
        """
        try:
            if event == "pull_request":
                await self._handle_pull_request(payload)
            elif event == "push":
                await self._handle_push(payload)
            elif event == "status":
                self._handle_status(payload)
            else:
                logger.debug(f"Ignoring {event} event")
        except Exception:
            logger.exception(f"Failed to handle {event} event")
            return False
        return True

    async def _handle_pull_request(self, payload: dict) -> None:
        action = payload.get("action")
        pr = PRRef.from_api(payload["pull_request"])

        if action == "unlabeled":
            if (payload.get("label") or {}).get("name") == DISABLE_SYNC_LABEL:
                await self.service.sync_pr(pr)
            return

        aspects = PULL_REQUEST_ASPECTS.get(action)
        if aspects is None:
            logger.debug(f"Ignoring pull_request.{action} for {pr.key}")
            return

        # the bot's own changes would only echo back
        if await self._sent_by_bot(payload):
            logger.debug(f"Ignoring pull_request.{action} sent by the bot for {pr.key}")
            return

        pair = await self.service.sync_pr(pr, aspects)
        if pair is None and action == "closed" and pr.merged:
            await self.service.sync_child_repos(pr)

    async def _handle_push(self, payload: dict) -> None:
        if await self._sent_by_bot(payload):
            logger.debug(f"Ignoring push to {payload.get('ref')} sent by the bot")
            return
        await self.service.sync_push(payload)

    def _handle_status(self, payload: dict) -> None:
        context = payload.get("context", "")
        if is_sync_status_context(context):
            return

        repository = payload["repository"]
        default_branch = repository.get("default_branch")
        if any(branch.get("name") == default_branch for branch in payload.get("branches") or []):
            return

        sha = payload["sha"]
        repo_name = repository["full_name"]

        async def sync() -> None:
            try:
                await self.service.sync_commit_statuses(repo_name, sha)
            except Exception:
                logger.exception(f"Failed to sync statuses for {repo_name}@{sha[:7]}")

        self.throttle.call(sha, sync)
