"""
Endercom SDK - Agent Functions

Exposes a plain Python function as an HTTP endpoint that the Endercom
platform calls to deliver work. The function registers its endpoint with the
platform when it starts and unregisters when it stops.

Usage:
    ```python
    from endercom import AgentFunction

    fn = AgentFunction("Echo", description="Echoes its input")

    @fn.set_handler
    def echo(data):
        return {"echo": data}

    fn.run(port=3001)
    ```
"""

import asyncio
import contextlib
import dataclasses
import inspect
import json
import logging
import socket
from typing import Any, Awaitable, Callable, Optional, Union

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from .client import AsyncEndercomClient
from .config import FunctionConfig
from .exceptions import (
    ConfigurationError,
    EndercomError,
    HandlerExecutionError,
    RegistrationError,
)
from .models import (
    ErrorResponse,
    FunctionIdentity,
    HealthResponse,
    InfoResponse,
    RegistrationRecord,
    RegistrationState,
    RuntimeState,
)
from .shutdown import get_shutdown_coordinator

logger = logging.getLogger("endercom.function")

FunctionHandler = Callable[[Any], Union[Any, Awaitable[Any]]]

MISSING_HANDLER_ERROR = "No handler defined for this function"


async def _call_handler(handler: FunctionHandler, input_data: Any) -> Any:
    """Call a handler, awaiting its result when it returns an awaitable."""
    result = handler(input_data)
    if inspect.isawaitable(result):
        result = await result
    return result


def _bind_socket(host: str, port: int) -> socket.socket:
    family = socket.AF_INET6 if ":" in host else socket.AF_INET
    return socket.create_server((host, port), family=family)


class _Server(uvicorn.Server):
    """uvicorn server that leaves SIGINT/SIGTERM to the shutdown coordinator."""

    def install_signal_handlers(self) -> None:
        pass

    def capture_signals(self):
        return contextlib.nullcontext()


def create_app(function: "AgentFunction") -> FastAPI:
    """Create the FastAPI application serving an agent function."""
    app = FastAPI(
        title=function.name,
        description=function.description,
    )

    @app.get("/health", response_model=HealthResponse)
    async def health():
        return HealthResponse(name=function.name)

    @app.post(
        "/execute",
        responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    )
    async def execute(request: Request):
        raw = await request.body()
        if raw:
            try:
                body = json.loads(raw)
            except ValueError:
                return JSONResponse(
                    status_code=400, content={"error": "Invalid JSON body"}
                )
        else:
            body = {}

        if isinstance(body, dict) and "input" in body:
            input_data = body["input"]
        else:
            input_data = body

        try:
            result = await function.execute(input_data)
        except (ConfigurationError, HandlerExecutionError) as e:
            return JSONResponse(status_code=500, content={"error": e.message})
        return JSONResponse(content=result)

    @app.get("/info", response_model=InfoResponse)
    async def info():
        return InfoResponse(
            name=function.name,
            description=function.description,
            capabilities=function.capabilities,
        )

    return app


class AgentFunction:
    """
    A locally hosted function reachable by the Endercom platform over HTTP.

    Routes:
        GET  /health   liveness probe
        POST /execute  runs the handler on the request's ``input``
        GET  /info     name, description and capabilities

    Example:
        ```python
        fn = AgentFunction("Summarizer", capabilities=["text", "summary"])
        fn.set_handler(summarize)
        await fn.start(port=3001)
        ...
        await fn.stop()
        ```
    """

    def __init__(
        self,
        name: str,
        description: str = "",
        capabilities: Optional[list[str]] = None,
        platform_url: Optional[str] = None,
        auto_register: Optional[bool] = None,
        debug: Optional[bool] = None,
        config: Optional[FunctionConfig] = None,
    ):
        if not name:
            raise ConfigurationError("A function name is required")

        config = dataclasses.replace(config) if config else FunctionConfig()
        if platform_url:
            config.platform_url = platform_url.rstrip("/")
        if auto_register is not None:
            config.auto_register = auto_register
        if debug is not None:
            config.debug = debug
        self._config = config

        self._identity = FunctionIdentity(
            name=name,
            description=description or "",
            capabilities=tuple(capabilities or ()),
        )

        self._handler: Optional[FunctionHandler] = None
        self._state = RuntimeState.CREATED
        self._registration_state = RegistrationState.UNREGISTERED
        self._registration: Optional[RegistrationRecord] = None
        self._endpoint_url: Optional[str] = None
        self._host: Optional[str] = None
        self._port: Optional[int] = None

        self._async_client: Optional[AsyncEndercomClient] = None
        self._server: Optional[_Server] = None
        self._serve_task: Optional[asyncio.Task] = None
        self._stopped: Optional[asyncio.Event] = None

        self.app = create_app(self)

        get_shutdown_coordinator().register(self)

    def __repr__(self) -> str:
        return f"AgentFunction(name={self.name!r}, state={self._state.value!r})"

    # ==================== Properties ====================

    @property
    def name(self) -> str:
        return self._identity.name

    @property
    def description(self) -> str:
        return self._identity.description

    @property
    def capabilities(self) -> list[str]:
        return list(self._identity.capabilities)

    @property
    def identity(self) -> FunctionIdentity:
        return self._identity

    @property
    def config(self) -> FunctionConfig:
        return self._config

    @property
    def handler(self) -> Optional[FunctionHandler]:
        return self._handler

    @property
    def state(self) -> RuntimeState:
        return self._state

    @property
    def registration_state(self) -> RegistrationState:
        return self._registration_state

    @property
    def registration(self) -> Optional[RegistrationRecord]:
        return self._registration

    @property
    def function_id(self) -> Optional[str]:
        """The platform-assigned ID, while registered."""
        return self._registration.function_id if self._registration else None

    @property
    def endpoint_url(self) -> Optional[str]:
        return self._endpoint_url

    @property
    def host(self) -> Optional[str]:
        return self._host

    @property
    def port(self) -> Optional[int]:
        """The bound port once started (resolved when started on port 0)."""
        return self._port

    @property
    def async_client(self) -> AsyncEndercomClient:
        """Get or create the platform client."""
        if not self._async_client:
            self._async_client = AsyncEndercomClient(
                base_url=self._config.platform_url,
                timeout=self._config.timeout,
            )
        return self._async_client

    # ==================== Handler ====================

    def set_handler(self, handler: FunctionHandler) -> FunctionHandler:
        """
        Set the function handler, replacing any previous one.

        The handler receives the request's input and returns a JSON-serializable
        result, either directly or from a coroutine. Returns the handler so this
        can be used as a decorator.
        """
        self._handler = handler
        return handler

    async def execute(self, input_data: Any) -> Any:
        """
        Run the handler on one input.

        Raises:
            ConfigurationError: If no handler is set.
            HandlerExecutionError: If the handler fails or its result cannot be
                encoded as JSON.
        """
        handler = self._handler
        if handler is None:
            raise ConfigurationError(MISSING_HANDLER_ERROR)

        if self._config.debug:
            logger.info(f"Executing function with input: {input_data!r}")

        try:
            result = jsonable_encoder(await _call_handler(handler, input_data))
            json.dumps(result, allow_nan=False)
        except Exception as e:
            logger.error(f"Function execution error: {e}")
            raise HandlerExecutionError(
                f"Function execution failed: {e}", cause=e
            ) from e

        if self._config.debug:
            logger.info(f"Function execution completed: {result!r}")
        return result

    # ==================== Platform Registration ====================

    async def register_with_platform(
        self, host: str = "localhost", port: int = 3001
    ) -> dict[str, Any]:
        """
        Register this function's execute endpoint with the platform.

        A function that is already registered returns the recorded response
        without contacting the platform again.

        Returns:
            The platform's response body.

        Raises:
            RegistrationError: If the platform is unreachable, times out or
                rejects the registration, or if a registration change is
                already in progress.
        """
        if self._registration_state in (
            RegistrationState.REGISTERING,
            RegistrationState.UNREGISTERING,
        ):
            raise RegistrationError(
                f"Registration of '{self.name}' is already "
                f"{self._registration_state.value}"
            )
        if self._registration is not None:
            logger.info(
                f"Function '{self.name}' is already registered "
                f"with ID: {self._registration.function_id}"
            )
            return self._registration.response

        if not self._endpoint_url:
            self._endpoint_url = f"http://{host}:{port}/execute"

        self._registration_state = RegistrationState.REGISTERING
        try:
            data = await self.async_client.register_function(
                self._identity, self._endpoint_url
            )
        except RegistrationError as e:
            self._registration_state = RegistrationState.UNREGISTERED
            logger.error(f"Failed to register with platform: {e.message}")
            raise
        except asyncio.CancelledError:
            self._registration_state = RegistrationState.UNREGISTERED
            raise

        self._registration = RegistrationRecord(
            function_id=str(data["data"]["id"]),
            endpoint_url=self._endpoint_url,
            response=data,
        )
        self._registration_state = RegistrationState.REGISTERED
        logger.info(
            f"Successfully registered function '{self.name}' "
            f"with ID: {self._registration.function_id}"
        )
        return data

    async def unregister_from_platform(self) -> bool:
        """
        Remove this function's registration from the platform.

        Never raises: failures are logged and reported as ``False``, and the
        registration record is kept so a later call can try again.
        """
        if self._registration is None:
            logger.warning("No function ID available, cannot unregister")
            return False
        if self._registration_state is RegistrationState.UNREGISTERING:
            logger.warning(f"Unregistration of '{self.name}' already in progress")
            return False

        function_id = self._registration.function_id
        self._registration_state = RegistrationState.UNREGISTERING
        try:
            await self.async_client.unregister_function(function_id)
        except (EndercomError, httpx.HTTPError) as e:
            self._registration_state = RegistrationState.REGISTERED
            logger.error(f"Failed to unregister from platform: {e}")
            return False

        self._registration = None
        self._registration_state = RegistrationState.UNREGISTERED
        logger.info(f"Successfully unregistered function '{self.name}'")
        return True

    # ==================== Lifecycle ====================

    async def start(self, port: int = 3001, host: str = "localhost") -> None:
        """
        Register (when enabled) and start serving on host:port.

        Returns once the listener accepts connections. A failed registration
        is logged and the function serves anyway.

        Raises:
            ConfigurationError: If no handler is set or the function was
                already started.
            OSError: If the address cannot be bound.
        """
        if self._handler is None:
            raise ConfigurationError("No handler defined. Use set_handler() first.")
        if self._state is not RuntimeState.CREATED:
            raise ConfigurationError(
                f"Function '{self.name}' is already {self._state.value}; "
                "create a new instance to serve again"
            )

        self._state = RuntimeState.STARTING
        self._host = host
        self._port = port

        if self._config.auto_register:
            try:
                await self.register_with_platform(host, port)
            except RegistrationError as e:
                logger.warning(f"Auto-registration failed: {e.message}")
                logger.info(
                    "Function will still run, but won't be registered with platform"
                )

        try:
            sock = _bind_socket(host, port)
        except OSError as e:
            logger.error(f"Cannot listen on {host}:{port}: {e}")
            await self._abort_start()
            raise

        self._port = sock.getsockname()[1]
        base = f"http://{host}:{self._port}"
        logger.info(f"Starting {self.name} on {host}:{self._port}")
        logger.info(f"Health check: {base}/health")
        logger.info(f"Execute endpoint: {base}/execute")
        logger.info(f"Function info: {base}/info")

        self._stopped = asyncio.Event()
        self._server = _Server(
            uvicorn.Config(self.app, log_level=self._config.log_level)
        )
        self._serve_task = asyncio.create_task(self._server.serve(sockets=[sock]))

        while not self._server.started:
            if self._serve_task.done():
                sock.close()
                error = self._serve_task.exception()
                self._server = None
                self._serve_task = None
                await self._abort_start()
                if error is not None:
                    raise error
                raise EndercomError(f"Server for '{self.name}' failed to start")
            await asyncio.sleep(0.01)

        self._state = RuntimeState.SERVING
        coordinator = get_shutdown_coordinator()
        coordinator.register(self)
        coordinator.install()
        logger.info(f"Agent function '{self.name}' is running on port {self._port}")

    async def _abort_start(self) -> None:
        self._state = RuntimeState.CREATED
        if self._registration is not None:
            await self.unregister_from_platform()

    async def stop(self) -> None:
        """
        Stop serving and unregister from the platform.

        Safe to call more than once and before ``start``. A failed
        unregistration is logged and retried by the next call.
        """
        if self._server is not None:
            self._server.should_exit = True
            if self._serve_task is not None:
                await self._serve_task
            self._server = None
            self._serve_task = None
            self._state = RuntimeState.STOPPED
            logger.info(f"Agent function '{self.name}' stopped")

        if self._config.auto_register and self._registration is not None:
            if not await self.unregister_from_platform():
                logger.error("Failed to unregister during shutdown")

        get_shutdown_coordinator().discard(self)

        if self._async_client is not None:
            await self._async_client.close()
            self._async_client = None

        if self._stopped is not None:
            self._stopped.set()

    async def serve(self, port: int = 3001, host: str = "localhost") -> None:
        """Start the function and wait until it is stopped."""
        await self.start(port, host)
        stopped = self._stopped
        if stopped is not None:
            await stopped.wait()

    def run(self, port: int = 3001, host: str = "localhost") -> None:
        """
        Run the function until stopped or interrupted.

        This method blocks. SIGINT and SIGTERM stop the function and make this
        method return; exiting the process is left to the caller.
        """
        asyncio.run(self.serve(port, host))


def create_function(
    name: str, handler: FunctionHandler, **options: Any
) -> AgentFunction:
    """
    Convenience constructor for simple usage.

    Example:
        ```python
        create_function("Echo", lambda data: {"echo": data}, auto_register=False).run()
        ```
    """
    function = AgentFunction(name, **options)
    function.set_handler(handler)
    return function
