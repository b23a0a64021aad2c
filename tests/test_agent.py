"""
Unit tests for the Endercom agent module.

Tests the legacy polling Agent: configuration, message handling and the
polling loop.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from endercom.agent import Agent, echo_handler
from endercom.config import AgentConfig
from endercom.exceptions import APIError, ConfigurationError
from endercom.models import Message
from endercom.shutdown import get_shutdown_coordinator


def _mock_async_client(messages=None):
    client = MagicMock()
    client.poll_messages = AsyncMock(return_value=messages or [])
    client.respond_to_message = AsyncMock(return_value={"success": True})
    client.send_message = AsyncMock(return_value={"success": True})
    client.close = AsyncMock()
    return client


@pytest.fixture
def agent():
    return Agent(api_key="sk-test", frequency_id="freq-1")


class TestAgentConfig:
    """Tests for Agent construction."""

    def test_defaults(self, agent):
        assert agent.frequency_id == "freq-1"
        assert agent.config.base_url == "https://endercom.io"
        assert agent.config.poll_interval == 2.0
        assert agent.config.timeout == 10.0
        assert agent.running is False

    def test_requires_api_key(self):
        with pytest.raises(ConfigurationError, match="API key"):
            Agent(frequency_id="freq-1")

    def test_requires_frequency(self):
        with pytest.raises(ConfigurationError, match="frequency"):
            Agent(api_key="sk-test")

    def test_from_config(self):
        config = AgentConfig(api_key="sk", frequency_id="f", poll_interval=0.5)
        agent = Agent(base_url="http://local.test/", config=config)
        assert agent.config.base_url == "http://local.test"
        assert agent.config.poll_interval == 0.5
        assert config.base_url == "https://endercom.io"

    def test_frequency_from_config(self):
        agent = Agent(config=AgentConfig(api_key="sk", frequency_id="freq-cfg"))
        assert agent.frequency_id == "freq-cfg"
        assert repr(agent) == "Agent(frequency_id='freq-cfg', running=False)"

    def test_clients_carry_api_key(self, agent):
        assert agent.client._client.headers["Authorization"] == "Bearer sk-test"
        assert agent.async_client.api_key == "sk-test"


class TestMessageHandling:
    """Tests for poll_once and message handlers."""

    def test_echo_handler(self):
        assert echo_handler(Message(id="1", content="hi")) == "Echo: hi"

    @pytest.mark.asyncio
    async def test_default_handler_echoes(self, agent):
        client = _mock_async_client([Message(id="m1", content="hello")])
        agent._async_client = client

        assert await agent.poll_once() == 1
        client.poll_messages.assert_awaited_once_with("freq-1")
        client.respond_to_message.assert_awaited_once_with(
            "freq-1", "m1", "Echo: hello"
        )

    @pytest.mark.asyncio
    async def test_custom_handler(self, agent):
        @agent.set_message_handler
        def handle(message):
            if "hello" in message.content.lower():
                return "Hello back!"
            return f"Echo: {message.content}"

        client = _mock_async_client(
            [Message(id="1", content="Hello there"), Message(id="2", content="other")]
        )
        agent._async_client = client

        assert await agent.poll_once() == 2
        replies = [c.args[2] for c in client.respond_to_message.await_args_list]
        assert replies == ["Hello back!", "Echo: other"]

    @pytest.mark.asyncio
    async def test_async_handler(self, agent):
        async def handle(message):
            return message.content.upper()

        agent.set_message_handler(handle)
        client = _mock_async_client([Message(id="1", content="loud")])
        agent._async_client = client

        await agent.poll_once()
        client.respond_to_message.assert_awaited_once_with("freq-1", "1", "LOUD")

    @pytest.mark.asyncio
    async def test_handler_failure_skips_message(self, agent):
        def handle(message):
            if message.id == "bad":
                raise ValueError("cannot handle")
            return "ok"

        agent.set_message_handler(handle)
        client = _mock_async_client(
            [Message(id="bad", content="x"), Message(id="good", content="y")]
        )
        agent._async_client = client

        assert await agent.poll_once() == 1
        client.respond_to_message.assert_awaited_once_with("freq-1", "good", "ok")

    @pytest.mark.asyncio
    async def test_respond_failure_skips_message(self, agent, caplog):
        client = _mock_async_client(
            [Message(id="m1", content="x"), Message(id="m2", content="y")]
        )
        client.respond_to_message = AsyncMock(
            side_effect=[APIError("down", status_code=503), {"success": True}]
        )
        agent._async_client = client

        assert await agent.poll_once() == 1
        assert client.respond_to_message.await_count == 2
        client.respond_to_message.assert_awaited_with("freq-1", "m2", "Echo: y")
        assert "Failed to respond to message m1" in caplog.text

    @pytest.mark.asyncio
    async def test_none_reply_sends_nothing(self, agent):
        agent.set_message_handler(lambda message: None)
        client = _mock_async_client([Message(id="1", content="x")])
        agent._async_client = client

        assert await agent.poll_once() == 0
        client.respond_to_message.assert_not_awaited()

    def test_send_message(self, agent):
        agent._client = MagicMock()
        agent.send_message("Hello specific agent!", "agent_id_here")
        agent._client.send_message.assert_called_once_with(
            "freq-1", "Hello specific agent!", "agent_id_here"
        )

    @pytest.mark.asyncio
    async def test_send_message_async(self, agent):
        client = _mock_async_client()
        agent._async_client = client
        await agent.send_message_async("Hello everyone!")
        client.send_message.assert_awaited_once_with("freq-1", "Hello everyone!", None)


class TestPollingLoop:
    """Tests for run_async and stop."""

    @pytest.mark.asyncio
    async def test_runs_until_stopped(self):
        agent = Agent(
            config=AgentConfig(api_key="sk", frequency_id="f", poll_interval=0.01)
        )
        client = _mock_async_client()
        calls = []

        async def poll(frequency_id):
            calls.append(frequency_id)
            if len(calls) == 3:
                agent.stop()
            return [Message(id=str(len(calls)), content="x")]

        client.poll_messages = AsyncMock(side_effect=poll)
        agent._async_client = client

        await agent.run_async()

        assert calls == ["f", "f", "f"]
        assert client.respond_to_message.await_count == 3
        assert agent.running is False
        client.close.assert_awaited_once()
        assert agent not in get_shutdown_coordinator().targets

    @pytest.mark.asyncio
    async def test_poll_errors_do_not_stop_the_loop(self):
        agent = Agent(
            config=AgentConfig(api_key="sk", frequency_id="f", poll_interval=0.01)
        )
        client = _mock_async_client()

        calls = []

        async def poll(frequency_id):
            calls.append(frequency_id)
            if len(calls) == 1:
                raise APIError("Service unavailable", status_code=503)
            agent.stop()
            return []

        client.poll_messages = AsyncMock(side_effect=poll)
        agent._async_client = client

        await agent.run_async()
        assert len(calls) == 2
