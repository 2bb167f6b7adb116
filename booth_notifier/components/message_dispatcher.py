"""
Message dispatching components for the BOOTH notifier.

This module posts formatted alerts to Discord channels through the bot REST
API with retry logic, and answers audience-gate lookups for channels.
"""

import logging
import time
from datetime import datetime
from typing import Any, Dict

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..interfaces import IDestinationTransport
from ..models.alert import FormattedAlert
from ..models.config import DiscordConfig
from ..models.delivery import DeliveryResult
from ..models.destination import AudienceGate
from ..utils.error_handling import RetryConfig, TransportError

logger = logging.getLogger(__name__)

# Discord channel type of announcement (news) channels
ANNOUNCEMENT_CHANNEL_TYPE = 5


class RateLimitedError(TransportError):
    """Raised when Discord answers 429 Too Many Requests."""

    def __init__(self, message: str, retry_after: float):
        super().__init__(message)
        self.retry_after = retry_after


class DiscordDispatcher(IDestinationTransport):
    """Discord bot API message dispatcher."""

    def __init__(self, config: DiscordConfig, timeout: int = 30):
        """
        Initialize Discord dispatcher.

        Args:
            config: Bot token, API base URL and retry settings
            timeout: Request timeout in seconds
        """
        self.config = config
        self.base_url = config.api_base_url.rstrip("/")
        self.timeout = timeout
        self.retry_config = RetryConfig(
            max_attempts=config.max_retries + 1,
            base_delay=config.retry_delay,
        )
        self.session = self._create_session()

    def _create_session(self) -> requests.Session:
        """Create a requests session with retry configuration."""
        session = requests.Session()

        # Message posts are retried by deliver() so they are never duplicated
        retry_strategy = Retry(
            total=self.config.max_retries,
            backoff_factor=1,
            status_forcelist=[500, 502, 503, 504],
            allowed_methods=["HEAD", "GET"],
        )

        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        session.headers.update(
            {
                "Authorization": f"Bot {self.config.bot_token}",
                "Content-Type": "application/json",
            }
        )
        return session

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.RequestException as e:
            raise TransportError(f"{method} {path} failed: {e}") from e

        if response.status_code == 429:
            raise RateLimitedError(
                f"Rate limited on {method} {path}", self._parse_retry_after(response)
            )

        if response.status_code >= 400:
            raise TransportError(
                f"Discord API error {response.status_code} for {method} {path}: "
                f"{response.text[:200]}"
            )
        return response

    def get_channel(self, channel_id: int) -> Dict[str, Any]:
        """Fetch current channel metadata. Callers memoize per routing pass."""
        return self._request("GET", f"/channels/{channel_id}").json()

    def resolve_audience_gate(self, destination_id: int) -> AudienceGate:
        """
        Look up whether a channel is age-restricted.

        Raises:
            TransportError: If the channel cannot be fetched or is not a
                server channel
        """
        channel = self.get_channel(destination_id)
        if channel.get("guild_id") is None:
            raise TransportError(f"Channel {destination_id} is not a server channel")

        return AudienceGate.from_nsfw_flag(bool(channel.get("nsfw", False)))

    def deliver(self, destination_id: int, alert: FormattedAlert) -> DeliveryResult:
        """
        Send alert with retry logic, then crosspost it where supported.

        Args:
            destination_id: Target channel id
            alert: Formatted alert to send

        Returns:
            DeliveryResult: Result of the successful delivery

        Raises:
            TransportError: If every attempt failed
        """
        start_time = datetime.now()
        payload = alert.to_discord_payload()
        attempts = self.retry_config.max_attempts
        last_error = None

        for attempt in range(attempts):
            try:
                logger.debug(
                    f"Sending alert to channel {destination_id} "
                    f"(attempt {attempt + 1}/{attempts})"
                )
                message = self._post_message(destination_id, payload)
                break

            except TransportError as e:
                last_error = e
                logger.warning(f"Send attempt {attempt + 1} failed: {e}")

                # Don't sleep after the last attempt
                if attempt < attempts - 1:
                    if isinstance(e, RateLimitedError):
                        sleep_time = e.retry_after
                    else:
                        sleep_time = self.retry_config.delay_for(attempt)
                    logger.info(f"Retrying in {sleep_time:.1f} seconds...")
                    time.sleep(sleep_time)
        else:
            error_msg = f"Failed after {attempts} attempts. Last error: {last_error}"
            logger.error(f"Delivery to channel {destination_id} failed: {error_msg}")
            raise TransportError(error_msg) from last_error

        delivery_time = datetime.now()
        message_id = str(message.get("id", "")) or None
        logger.info(
            f"Alert sent to channel {destination_id} in "
            f"{(delivery_time - start_time).total_seconds():.2f}s"
        )

        crossposted = False
        if message_id is not None:
            crossposted = self._crosspost(destination_id, message_id)

        result = DeliveryResult(
            destination_id=destination_id,
            success=True,
            delivery_time=delivery_time,
            message_id=message_id,
            crossposted=crossposted,
        )
        result.validate()
        return result

    def _post_message(self, channel_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        response = self._request(
            "POST", f"/channels/{channel_id}/messages", json=payload
        )
        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    @staticmethod
    def _parse_retry_after(response: requests.Response) -> float:
        try:
            return float(response.json().get("retry_after", 1.0))
        except (ValueError, AttributeError):
            return 1.0

    def _crosspost(self, channel_id: int, message_id: str) -> bool:
        """Publish a message to following servers. Failures are only logged."""
        try:
            channel = self.get_channel(channel_id)
            if channel.get("type") != ANNOUNCEMENT_CHANNEL_TYPE:
                return False

            self._request(
                "POST", f"/channels/{channel_id}/messages/{message_id}/crosspost"
            )
            logger.info(f"Crossposted message {message_id} in channel {channel_id}")
            return True

        except TransportError as e:
            logger.warning(
                f"Crosspost of message {message_id} in channel {channel_id} failed: {e}"
            )
            return False

    def test_connection(self) -> bool:
        """Test connection to the Discord bot API."""
        try:
            user = self._request("GET", "/users/@me").json()
            logger.info(f"Connected to Discord bot: {user.get('username', 'Unknown')}")
            return True

        except TransportError as e:
            logger.error(f"Failed to connect to Discord: {e}")
            return False
