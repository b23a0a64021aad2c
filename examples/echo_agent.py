"""
Example: Polling agent with a custom message handler

Run with:
    ENDERCOM_API_KEY=... ENDERCOM_FREQUENCY_ID=... python examples/echo_agent.py
"""

import logging
from datetime import datetime, timezone

from endercom import Agent, AgentConfig, Message

logging.basicConfig(level=logging.INFO)

agent = Agent(config=AgentConfig.from_env())


@agent.set_message_handler
def handle_message(message: Message) -> str:
    text = message.content.lower()
    if "hello" in text:
        return "Hello back!"
    if "time" in text:
        return f"Current time: {datetime.now(timezone.utc).isoformat()}"
    return f"Echo: {message.content}"


if __name__ == "__main__":
    agent.send_message("Hello everyone!")
    agent.run()
