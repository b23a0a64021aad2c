"""
Example: Echo function

Serves an agent function that echoes its input and registers it with a
platform running on http://localhost:3000.

Run with:
    python examples/echo_function.py

Then:
    curl -X POST http://localhost:3001/execute -d '{"input": {"a": 1}}'
"""

import logging

from endercom import AgentFunction

logging.basicConfig(level=logging.INFO)

function = AgentFunction(
    "Echo",
    description="Returns whatever it receives",
    capabilities=["echo", "testing"],
)


@function.set_handler
async def echo(data):
    return {"echo": data}


if __name__ == "__main__":
    function.run(port=3001)
