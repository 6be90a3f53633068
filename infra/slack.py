"""Slack client for sending notifications."""

import os
from typing import Optional

import httpx
from loguru import logger

from lib.harvest.models import RunSummary


def get_webhook_url(channel: str = "#harvest") -> Optional[str]:
    """Get Slack webhook URL from environment.

    Args:
        channel: Channel name (used to select webhook if multiple configured)

    Returns:
        Webhook URL or None if not configured
    """
    # Default webhook
    url = os.getenv("SLACK_WEBHOOK_URL")

    # Channel-specific webhooks (optional)
    if channel == "#harvest":
        url = os.getenv("SLACK_HARVEST_WEBHOOK_URL", url)

    return url


def send_message(
    text: str,
    channel: str = "#harvest",
    webhook_url: Optional[str] = None,
) -> bool:
    """Send a message to Slack.

    Args:
        text: Message text (supports Slack markdown)
        channel: Channel name (for webhook selection)
        webhook_url: Override webhook URL

    Returns:
        True if sent successfully, False otherwise
    """
    url = webhook_url or get_webhook_url(channel)

    if not url:
        logger.warning(f"Slack webhook URL not configured for {channel}")
        return False

    try:
        response = httpx.post(
            url,
            json={"text": text},
            timeout=10.0,
        )
    except httpx.HTTPError as e:
        logger.error(f"Failed to send Slack message: {e}")
        return False

    if response.status_code == 200:
        logger.info(f"Sent Slack message to {channel}")
        return True

    logger.error(f"Slack API error: {response.status_code} - {response.text}")
    return False


def format_run_summary(summary: RunSummary) -> str:
    """Slack markdown for a finished harvest run."""
    lines = [
        "*Hotel Harvest Complete*" if summary.ok else "*Hotel Harvest Finished With Errors*",
        f"• Succeeded: {len(summary.succeeded)}/{len(summary.outcomes)}",
    ]
    if summary.failed:
        lines.append(f"• Failed: {len(summary.failed)}")
    if summary.cancelled:
        lines.append(f"• Cancelled: {len(summary.cancelled)}")
    if summary.fault:
        lines.append(f"• Fault: {summary.fault}")

    for outcome in summary.outcomes:
        if outcome.error_kind:
            lines.append(f"  – {outcome.query}: {outcome.status} ({outcome.error_kind})")
        else:
            lines.append(f"  – {outcome.query}: {outcome.records} hotels → `{outcome.output_path}`")
    return "\n".join(lines)


def send_run_summary(summary: RunSummary, channel: str = "#harvest") -> bool:
    """Send a formatted run summary notification."""
    return send_message(format_run_summary(summary), channel)


def send_error(
    workflow: str,
    error: str,
    channel: str = "#harvest",
) -> bool:
    """Send an error notification.

    Args:
        workflow: Name of the failing workflow
        error: Error description
        channel: Slack channel

    Returns:
        True if sent successfully
    """
    message = f""":rotating_light: *{workflow} Failed*
```{error}```"""

    return send_message(message, channel)
