"""
Endercom SDK - Polling Agent

The original Endercom agent model: the agent polls its frequency for pending
messages, answers each one through a message handler, and can publish
messages of its own. New code should prefer ``AgentFunction``.

Usage:
    ```python
    from endercom import Agent

    agent = Agent(api_key="...", frequency_id="...")

    @agent.set_message_handler
    def reply(message):
        return f"Echo: {message.content}"

    agent.run()
    ```
"""

import asyncio
import dataclasses
import inspect
import logging
from typing import Awaitable, Callable, Optional, Union

from .client import AsyncEndercomClient, EndercomClient
from .config import AgentConfig
from .exceptions import ConfigurationError
from .models import Message
from .shutdown import get_shutdown_coordinator

logger = logging.getLogger("endercom.agent")

MessageHandler = Callable[[Message], Union[Optional[str], Awaitable[Optional[str]]]]


def echo_handler(message: Message) -> str:
    """Default handler: reply with the message content."""
    return f"Echo: {message.content}"


class Agent:
    """
    Polling agent bound to one frequency.

    Example:
        ```python
        agent = Agent(api_key="your_api_key", frequency_id="your_frequency_id")
        agent.send_message("Hello everyone!")
        agent.send_message("Hello specific agent!", "agent_id_here")
        ```
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        frequency_id: Optional[str] = None,
        base_url: Optional[str] = None,
        config: Optional[AgentConfig] = None,
    ):
        config = dataclasses.replace(config) if config else AgentConfig()
        if api_key:
            config.api_key = api_key
        if frequency_id:
            config.frequency_id = frequency_id
        if base_url:
            config.base_url = base_url.rstrip("/")

        if not config.api_key:
            raise ConfigurationError("An API key is required")
        if not config.frequency_id:
            raise ConfigurationError("A frequency ID is required")

        self._config = config
        self._frequency_id: str = config.frequency_id
        self._handler: MessageHandler = echo_handler
        self._client: Optional[EndercomClient] = None
        self._async_client: Optional[AsyncEndercomClient] = None
        self._running = False

    def __repr__(self) -> str:
        return f"Agent(frequency_id={self.frequency_id!r}, running={self._running})"

    @property
    def frequency_id(self) -> str:
        return self._frequency_id

    @property
    def config(self) -> AgentConfig:
        return self._config

    @property
    def running(self) -> bool:
        return self._running

    @property
    def client(self) -> EndercomClient:
        """Get or create the synchronous client."""
        if not self._client:
            self._client = EndercomClient(
                base_url=self._config.base_url,
                api_key=self._config.api_key,
                timeout=self._config.timeout,
            )
        return self._client

    @property
    def async_client(self) -> AsyncEndercomClient:
        """Get or create the asynchronous client."""
        if not self._async_client:
            self._async_client = AsyncEndercomClient(
                base_url=self._config.base_url,
                api_key=self._config.api_key,
                timeout=self._config.timeout,
            )
        return self._async_client

    def set_message_handler(self, handler: MessageHandler) -> MessageHandler:
        """Set the handler that produces a reply for each message."""
        self._handler = handler
        return handler

    # ==================== Messaging ====================

    def send_message(self, content: str, target_agent: Optional[str] = None) -> dict:
        """Send a message to all agents on the frequency, or to one agent."""
        return self.client.send_message(self.frequency_id, content, target_agent)

    async def send_message_async(
        self, content: str, target_agent: Optional[str] = None
    ) -> dict:
        """Async variant of ``send_message``."""
        return await self.async_client.send_message(
            self.frequency_id, content, target_agent
        )

    async def _reply(self, message: Message) -> Optional[str]:
        result = self._handler(message)
        if inspect.isawaitable(result):
            result = await result
        return result

    async def poll_once(self) -> int:
        """
        Fetch pending messages and answer each of them.

        Returns:
            The number of messages a response was posted for.
        """
        messages = await self.async_client.poll_messages(self.frequency_id)
        answered = 0
        for message in messages:
            logger.debug(f"Received message {message.id}: {message.content!r}")
            try:
                response = await self._reply(message)
            except Exception as e:
                logger.exception(f"Message handler error for {message.id}: {e}")
                continue

            if response is None:
                continue
            try:
                await self.async_client.respond_to_message(
                    self.frequency_id, message.id, str(response)
                )
            except Exception as e:
                logger.error(f"Failed to respond to message {message.id}: {e}")
                continue
            answered += 1
        return answered

    # ==================== Lifecycle ====================

    def run(self) -> None:
        """
        Start polling for messages.

        This method blocks until stop() is called or the process receives
        SIGINT/SIGTERM.
        """
        asyncio.run(self.run_async())

    async def run_async(self) -> None:
        """Async polling loop."""
        logger.info(f"Starting agent on frequency: {self.frequency_id}")
        self._running = True

        coordinator = get_shutdown_coordinator()
        coordinator.register(self)
        coordinator.install()
        try:
            while self._running:
                try:
                    await self.poll_once()
                except Exception as e:
                    logger.error(f"Polling error: {e}")
                if self._running:
                    await asyncio.sleep(self._config.poll_interval)
        finally:
            coordinator.discard(self)
            if self._async_client is not None:
                await self._async_client.close()
                self._async_client = None

    def stop(self) -> None:
        """Stop the agent after the current poll."""
        logger.info(f"Stopping agent on frequency: {self.frequency_id}")
        self._running = False
        if self._client is not None:
            self._client.close()
            self._client = None
