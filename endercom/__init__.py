"""
Endercom SDK - Python client for the Endercom agent platform.

Expose a function as an HTTP agent the platform can call, or run a polling
agent that answers messages on a frequency.
"""

from .agent import Agent, echo_handler
from .client import AsyncEndercomClient, EndercomClient
from .config import AgentConfig, FunctionConfig
from .exceptions import (
    APIError,
    AuthenticationError,
    ConfigurationError,
    EndercomError,
    HandlerExecutionError,
    NotFoundError,
    RegistrationError,
)
from .function import AgentFunction, create_app, create_function
from .models import (
    FunctionIdentity,
    Message,
    RegistrationRecord,
    RegistrationState,
    RuntimeState,
)
from .shutdown import ShutdownCoordinator, get_shutdown_coordinator

__version__ = "0.1.0"
__all__ = [
    "AgentFunction",
    "create_function",
    "create_app",
    "Agent",
    "echo_handler",
    "EndercomClient",
    "AsyncEndercomClient",
    "FunctionConfig",
    "AgentConfig",
    "FunctionIdentity",
    "Message",
    "RegistrationRecord",
    "RegistrationState",
    "RuntimeState",
    "ShutdownCoordinator",
    "get_shutdown_coordinator",
    "EndercomError",
    "ConfigurationError",
    "RegistrationError",
    "HandlerExecutionError",
    "APIError",
    "AuthenticationError",
    "NotFoundError",
]
