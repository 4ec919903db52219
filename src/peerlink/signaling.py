"""Ready-made handlers and an HTTP rendezvous server.

A handler is any ``async (encoded: str) -> str``. This module provides:
- http_handler: POSTs the envelope to a SignalingServer and returns the reply
- LoopbackSignaling: joins two in-process peers
- SignalingServer: answers POST /negotiate with a fresh Peer per request
"""

import asyncio
import logging
from typing import Awaitable, Callable

import aiohttp
from aiohttp import web

from peerlink.config import PeerConfig
from peerlink.errors import PeerlinkError, ValidationError
from peerlink.peer import Peer
from peerlink.protocols import Handler

logger = logging.getLogger(__name__)


def http_handler(
    url: str,
    session: aiohttp.ClientSession | None = None,
    timeout: float = 30.0,
) -> Handler:
    """Create a handler that POSTs the envelope to ``url``.

    Args:
        url: Rendezvous endpoint, e.g. "http://host:8821/negotiate".
        session: Optional aiohttp session (for testing). A private session
            is opened per call otherwise.
        timeout: Request timeout in seconds.

    Returns:
        Handler returning the response body.
    """
    client_timeout = aiohttp.ClientTimeout(total=timeout)

    async def post(http: aiohttp.ClientSession, encoded: str) -> str:
        async with http.post(
            url,
            data=encoded,
            headers={"Content-Type": "text/plain"},
            timeout=client_timeout,
        ) as resp:
            body = await resp.text()
            if resp.status != 200:
                raise PeerlinkError(f"Signaling request failed ({resp.status}): {body}")
            return body

    async def handler(encoded: str) -> str:
        if session is not None:
            return await post(session, encoded)
        async with aiohttp.ClientSession() as http:
            return await post(http, encoded)

    return handler


class LoopbackSignaling:
    """Joins an offering and an answering peer in the same process.

    Usage:
        signaling = LoopbackSignaling()
        offerer = Peer(signaling.offerer_handler)
        answerer = Peer(signaling.answerer_handler)
        signaling.bind(answerer)
    """

    def __init__(self) -> None:
        self._answerer: Peer | None = None
        self._answer: str | None = None

    def bind(self, answerer: Peer) -> None:
        """Set the peer that receives offers."""
        self._answerer = answerer

    async def offerer_handler(self, encoded_offer: str) -> str:
        """Deliver the offer to the answerer and return its answer."""
        if self._answerer is None:
            raise PeerlinkError("No answerer bound")
        self._answer = None
        await self._answerer.accept(encoded_offer)
        if self._answer is None:
            raise PeerlinkError("Answerer finished without sending an answer")
        return self._answer

    async def answerer_handler(self, encoded_answer: str) -> str:
        """Capture the answer for the waiting offerer."""
        self._answer = encoded_answer
        return ""


class SignalingServer:
    """HTTP server that answers offers (one fresh Peer per offer)."""

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = 8821,
        peer_config: PeerConfig | None = None,
        signaling_timeout: float = 30.0,
        peer_factory: Callable[[Handler], Peer] | None = None,
    ):
        """Initialize signaling server.

        Args:
            host: Host to bind to.
            port: Port to bind to.
            peer_config: Config for the peers created per offer.
            signaling_timeout: Timeout for producing an answer.
            peer_factory: Factory to create a Peer from its handler (for testing).
        """
        self.host = host
        self.port = port
        self.peer_config = peer_config or PeerConfig()
        self.signaling_timeout = signaling_timeout
        self._peer_factory = peer_factory or self._default_peer_factory

        self._peers: set[Peer] = set()
        self._tasks: set[asyncio.Task] = set()
        self._on_connected: Callable[[Peer], Awaitable[None]] | None = None

        self._app = web.Application()
        self._setup_routes()
        self._runner: web.AppRunner | None = None
        self._site: web.TCPSite | None = None

    def _default_peer_factory(self, handler: Handler) -> Peer:
        """Create default Peer."""
        return Peer(handler, config=self.peer_config)

    @property
    def app(self) -> web.Application:
        """Get the aiohttp application for testing."""
        return self._app

    @property
    def peers(self) -> set[Peer]:
        """Peers whose answer was sent and that are not closed yet."""
        return set(self._peers)

    def _setup_routes(self) -> None:
        """Set up HTTP routes."""
        self._app.router.add_get("/health", self._health)
        self._app.router.add_post("/negotiate", self._negotiate)

    async def _health(self, request: web.Request) -> web.Response:
        """Health check endpoint."""
        return web.json_response({"status": "ok"})

    async def _negotiate(self, request: web.Request) -> web.Response:
        """Answer an encoded offer with an encoded answer."""
        encoded_offer = (await request.text()).strip()
        if not encoded_offer:
            return web.json_response({"error": "Missing offer"}, status=400)

        answer: asyncio.Future[str] = asyncio.get_running_loop().create_future()

        async def deliver(encoded_answer: str) -> str:
            if not answer.done():
                answer.set_result(encoded_answer)
            return ""

        peer = self._peer_factory(deliver)
        accept = asyncio.create_task(peer.accept(encoded_offer))

        done, _ = await asyncio.wait(
            {answer, accept},
            timeout=self.signaling_timeout,
            return_when=asyncio.FIRST_COMPLETED,
        )

        if answer in done:
            self._peers.add(peer)
            self._track(asyncio.create_task(self._wait_for_connection(peer)))
            self._track(accept)
            return web.Response(text=answer.result(), content_type="text/plain")

        answer.cancel()
        if accept not in done:
            accept.cancel()
            await peer.close()
            return web.json_response({"error": "Signaling timeout"}, status=504)

        await peer.close()
        error = accept.exception()
        if isinstance(error, ValidationError):
            return web.json_response({"error": str(error)}, status=400)
        logger.error(f"Signaling error: {error!r}")
        return web.json_response({"error": str(error)}, status=500)

    def _track(self, task: asyncio.Task) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _wait_for_connection(self, peer: Peer) -> None:
        """Wait for peer to connect and notify callback."""
        try:
            await peer.connected()
            if self._on_connected:
                await self._on_connected(peer)
        except (PeerlinkError, TimeoutError) as e:
            logger.warning(f"Connection failed: {e}")
            await peer.close()
            self._peers.discard(peer)

    def on_connected(self, callback: Callable[[Peer], Awaitable[None]]) -> None:
        """Register callback for when a peer connects.

        Args:
            callback: Async function called with the connected peer.
        """
        self._on_connected = callback

    @property
    def actual_port(self) -> int:
        """Get the actual bound port (useful when port=0)."""
        if self._site and self._site._server:
            sockets = self._site._server.sockets
            if sockets:
                return sockets[0].getsockname()[1]
        return self.port

    async def start(self) -> None:
        """Start the signaling server."""
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        self._site = web.TCPSite(self._runner, self.host, self.port)
        await self._site.start()
        logger.info(f"Signaling server started on {self.host}:{self.actual_port}")

    async def close(self) -> None:
        """Close all peers and stop server."""
        for task in list(self._tasks):
            task.cancel()
        for peer in list(self._peers):
            await peer.close()
        self._peers.clear()

        if self._runner:
            await self._runner.cleanup()
            self._runner = None

        logger.info("Signaling server closed")
