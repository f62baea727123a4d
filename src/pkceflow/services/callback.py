"""Loopback redirect receiver for the authorization code flow.

Serves a small starlette application on a loopback address that captures
the authorization server's redirect and hands the full callback URL to the
waiting flow. Implements the AuthorizationHandler protocol.
"""

from __future__ import annotations

import asyncio
import logging
import socket
import webbrowser
from urllib.parse import urlparse

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import HTMLResponse, Response
from starlette.routing import Route

from pkceflow.models.errors import AuthorizationCallbackError, ConfigurationError
from pkceflow.services.security import is_loopback_host

logger = logging.getLogger(__name__)

_PAGE_TEMPLATE = """\
<!DOCTYPE html>
<html>
<head><title>{title}</title></head>
<body style="font-family: sans-serif; text-align: center; margin-top: 20vh;">
    <h1>{title}</h1>
    <p>{message}</p>
</body>
</html>
"""

_SUCCESS_HTML = _PAGE_TEMPLATE.format(
    title="Authorization Complete",
    message="You can close this tab and return to the application.",
)

_ERROR_HTML = _PAGE_TEMPLATE.format(
    title="Authorization Failed",
    message="The authorization server reported an error. "
    "Please restart the sign-in from the application.",
)


class LoopbackCallbackReceiver:
    """Receives the authorization redirect on a local HTTP server.

    Flow:
    1. Start uvicorn on the loopback host and port of the redirect URI
    2. Open the browser at the authorization URL (or log it)
    3. Wait for the first request on the callback path
    4. Stop the server and return the full callback URL

    Only the first callback is captured; later requests get the success page
    without changing the result.
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 8080,
        callback_path: str = "/callback",
        open_browser: bool = True,
        timeout: float | None = 300.0,
    ):
        """Initialize the receiver.

        Args:
            host: Loopback address to bind
            port: Port to bind
            callback_path: Path the authorization server redirects to
            open_browser: Open the system browser at the authorization URL
            timeout: Seconds to wait for the callback; None waits forever

        Raises:
            ConfigurationError: If host is not a loopback address
        """
        if not is_loopback_host(host):
            raise ConfigurationError(f"Callback receiver must bind a loopback host: {host}")

        self.host = host
        self.port = port
        self.callback_path = callback_path
        self.open_browser = open_browser
        self.timeout = timeout

        self._app = self._create_app()
        self._server: uvicorn.Server | None = None
        self._server_task: asyncio.Task | None = None
        self._callback: asyncio.Future[str] | None = None

    @classmethod
    def from_redirect_uri(cls, redirect_uri: str, **kwargs) -> LoopbackCallbackReceiver:
        """Create a receiver listening where redirect_uri points.

        Raises:
            ConfigurationError: If the redirect URI is not loopback HTTP
        """
        parsed = urlparse(redirect_uri)
        if parsed.scheme != "http" or not is_loopback_host(parsed.hostname):
            raise ConfigurationError(
                f"Redirect URI must be loopback http to receive callbacks: {redirect_uri}"
            )
        return cls(
            host=parsed.hostname,
            port=parsed.port or 80,
            callback_path=parsed.path or "/",
            **kwargs,
        )

    @property
    def app(self) -> Starlette:
        return self._app

    def _create_app(self) -> Starlette:
        """Create the Starlette application with the callback route."""
        routes = [
            Route(self.callback_path, self._handle_callback, methods=["GET"]),
        ]
        return Starlette(routes=routes)

    def _pending_callback(self) -> asyncio.Future[str]:
        if self._callback is None:
            self._callback = asyncio.get_running_loop().create_future()
        return self._callback

    async def _handle_callback(self, request: Request) -> Response:
        """Capture the first redirect and answer with a status page."""
        callback = self._pending_callback()

        if callback.done():
            return HTMLResponse(_SUCCESS_HTML)

        callback.set_result(str(request.url))

        if "error" in request.query_params:
            logger.warning(
                f"Authorization server redirected with error: "
                f"{request.query_params['error']}"
            )
            return HTMLResponse(_ERROR_HTML, status_code=400)

        logger.info("Authorization callback received")
        return HTMLResponse(_SUCCESS_HTML)

    async def wait_for_callback(self) -> str:
        """Wait for the redirect and return the full callback URL.

        Raises:
            AuthorizationCallbackError: If no callback arrives before the timeout
        """
        callback = self._pending_callback()
        try:
            return await asyncio.wait_for(asyncio.shield(callback), self.timeout)
        except asyncio.TimeoutError as e:
            raise AuthorizationCallbackError(
                f"Timed out after {self.timeout}s waiting for the authorization callback"
            ) from e

    def _bind_socket(self) -> socket.socket:
        """Bind the listening socket before handing it to uvicorn.

        Raises:
            AuthorizationCallbackError: If the address cannot be bound
        """
        family = socket.AF_INET6 if ":" in self.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.bind((self.host, self.port))
        except OSError as e:
            sock.close()
            raise AuthorizationCallbackError(
                f"Callback server failed to start on {self.host}:{self.port}: {e}"
            ) from e
        return sock

    async def _serve(self, sock: socket.socket) -> None:
        try:
            await self._server.serve(sockets=[sock])
        except SystemExit as e:
            # uvicorn calls sys.exit() when startup fails
            raise AuthorizationCallbackError(
                f"Callback server exited during startup (exit code {e.code})"
            ) from e

    async def start(self) -> None:
        """Start the HTTP server in a background task.

        Port 0 binds an ephemeral port; ``port`` holds the bound port afterwards.

        Raises:
            AuthorizationCallbackError: If the server cannot start
        """
        sock = self._bind_socket()
        self.port = sock.getsockname()[1]

        config = uvicorn.Config(
            app=self._app, host=self.host, port=self.port, log_level="warning"
        )
        self._server = uvicorn.Server(config)
        self._server_task = asyncio.create_task(self._serve(sock))

        while not self._server.started:
            if self._server_task.done():
                error = self._server_task.exception()
                self._server = None
                self._server_task = None
                sock.close()
                if isinstance(error, AuthorizationCallbackError):
                    raise error
                raise AuthorizationCallbackError(
                    f"Callback server failed to start on {self.host}:{self.port}"
                ) from error
            await asyncio.sleep(0.05)

        logger.info(
            f"Callback server listening on http://{self.host}:{self.port}{self.callback_path}"
        )

    async def stop(self) -> None:
        """Stop the HTTP server."""
        if self._server is not None:
            self._server.should_exit = True
        if self._server_task is not None:
            await self._server_task
        self._server = None
        self._server_task = None

    async def handle_authorization(self, auth_url: str) -> str:
        """Send the user to auth_url and return the callback URL they come back with."""
        self._callback = None
        await self.start()
        try:
            if self.open_browser:
                logger.info("Opening browser for authorization")
                webbrowser.open(auth_url)
            else:
                logger.info(f"Visit this URL to authorize: {auth_url}")
            return await self.wait_for_callback()
        finally:
            await self.stop()
