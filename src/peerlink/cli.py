"""CLI entry point for peerlink."""

import asyncio
from pathlib import Path

import click

from peerlink import __version__
from peerlink.config import load_config
from peerlink.logging import setup_logging


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=False, path_type=Path),
    default=None,
    help="Path to config file.",
)
@click.pass_context
def main(ctx: click.Context, config: Path | None) -> None:
    """peerlink - WebRTC sessions without a signaling server."""
    ctx.ensure_object(dict)
    ctx.obj["config"] = load_config(config)
    ctx.obj["logger"] = setup_logging(ctx.obj["config"])


@main.command()
def version() -> None:
    """Show version."""
    click.echo(f"peerlink version {__version__}")


@main.command()
@click.option("--host", default=None, help="Address to bind (default from config).")
@click.option("--port", type=int, default=None, help="Port to bind (default from config).")
@click.pass_context
def answer(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Answer offers over HTTP and echo every message back."""
    from peerlink.peer import Peer
    from peerlink.signaling import SignalingServer

    config = ctx.obj["config"]
    server = SignalingServer(
        host=host or config.signaling.host,
        port=port if port is not None else config.signaling.port,
        peer_config=config.peer,
        signaling_timeout=config.signaling.signaling_timeout,
    )

    async def on_connected(peer: Peer) -> None:
        click.echo("Peer connected")

        def echo(message):
            click.echo(f"< {message}")
            peer.send(message)

        peer.on_message(echo)

    server.on_connected(on_connected)

    async def _run():
        await server.start()
        click.echo(f"Waiting for offers on http://{server.host}:{server.actual_port}/negotiate")
        click.echo("Press Ctrl+C to stop")
        try:
            await asyncio.Event().wait()
        finally:
            await server.close()

    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        click.echo("\nShutting down...")


@main.command()
@click.argument("url")
@click.option("--message", "-m", default="hello", help="Message to send once connected.")
@click.option("--wait", type=float, default=2.0, help="Seconds to wait for replies.")
@click.pass_context
def offer(ctx: click.Context, url: str, message: str, wait: float) -> None:
    """Connect to an answering peer at URL and send a message."""
    from peerlink.errors import PeerlinkError
    from peerlink.peer import Peer
    from peerlink.signaling import http_handler

    config = ctx.obj["config"]

    async def _run():
        async with Peer(http_handler(url), config=config.peer) as peer:
            peer.on_message(lambda reply: click.echo(f"< {reply}"))
            await peer.start()
            await peer.connected()
            click.echo("Connected")
            peer.send(message)
            click.echo(f"> {message}")
            await asyncio.sleep(wait)

    try:
        asyncio.run(_run())
    except (PeerlinkError, TimeoutError) as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)
