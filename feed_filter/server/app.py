"""feed_filter - MCP Server

This module implements the MCP server using FastMCP with multi-transport support
(STDIO, SSE, and Streamable HTTP). Every tool is registered wrapped in the
exception handling and logging decorators.
"""

import asyncio
import os
import sys
from typing import Optional

import click
from mcp.server.fastmcp import FastMCP
from mcp.server.transport_security import TransportSecuritySettings

from feed_filter.config import ServerConfig, get_config
from feed_filter.decorators import exception_handler, tool_logger
from feed_filter.logging_config import setup_logging, logger
from feed_filter.services import preferences
from feed_filter.services.sync import get_sync_service
from feed_filter.storage.database import close_database, get_database
from feed_filter.tools.feed_tools import feed_tools


def create_mcp_server(config: Optional[ServerConfig] = None) -> FastMCP:
    """Create and configure the MCP server.

    Args:
        config: Optional server configuration

    Returns:
        Configured FastMCP server instance
    """
    if config is None:
        config = get_config()

    setup_logging(config)
    logger.info(f"Server config: {config.name} at log level {config.log_level}")

    # Configure DNS rebinding protection (disabled by default for development)
    dns_protection = os.getenv("MCP_DNS_REBINDING_PROTECTION", "false").lower() == "true"
    allowed_hosts_env = os.getenv("MCP_ALLOWED_HOSTS", "")
    allowed_hosts = [h.strip() for h in allowed_hosts_env.split(",") if h.strip()] if allowed_hosts_env else []

    logger.info(f"DNS rebinding protection: {'enabled' if dns_protection else 'disabled'}")
    if dns_protection and allowed_hosts:
        logger.info(f"Allowed hosts: {allowed_hosts}")

    mcp_server = FastMCP(
        config.name or "feed_filter",
        transport_security=TransportSecuritySettings(
            enable_dns_rebinding_protection=dns_protection,
            allowed_hosts=allowed_hosts
        )
    )

    register_tools(mcp_server)

    logger.info("Server initialization complete")
    return mcp_server


def register_tools(mcp_server: FastMCP) -> None:
    """Register all MCP tools with the server.

    Decorated functions are registered directly so FastMCP can introspect
    the original signatures.
    """
    for tool_func in feed_tools:
        # exception_handler → tool_logger → tool
        decorated_func = exception_handler(tool_logger(tool_func))

        tool_name = tool_func.__name__
        mcp_server.tool(name=tool_name)(decorated_func)

        logger.debug(f"Registered feed tool: {tool_name}")

    logger.info(f"Server '{mcp_server.name}' initialized with {len(feed_tools)} tools")


async def startup_sync() -> None:
    """Sync feeds at startup when enabled and the last sync is old enough."""
    settings = await preferences.get_preferences()
    if not settings[preferences.AUTO_SYNC_ON_STARTUP]:
        logger.info("Auto sync on startup is disabled")
        return

    service = get_sync_service()
    if not await service.should_sync():
        logger.info("Last sync is recent, skipping startup sync")
        return

    result = await service.refresh()
    logger.info(f"Startup sync: {result.new_articles} new articles from {result.fetched} feeds")


def log_startup_sync_result(task: asyncio.Task) -> None:
    """Done callback that surfaces a failed startup sync in the log."""
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.error(f"Startup sync failed: {error}", exc_info=error)


# Create a server instance that can be imported by the MCP CLI
server = create_mcp_server()


@click.command()
@click.option(
    "--port",
    default=3001,
    help="Port to listen on for SSE or Streamable HTTP transport"
)
@click.option(
    "--host",
    default="127.0.0.1",
    help="Host to bind to (use 0.0.0.0 for Docker)"
)
@click.option(
    "--transport",
    type=click.Choice(["stdio", "sse", "streamable-http"]),
    default="stdio",
    help="Transport type (stdio, sse, or streamable-http)"
)
@click.option(
    "--sync/--no-sync",
    default=True,
    help="Run a background sync at startup (honours the auto sync setting)"
)
def main(port: int, host: str, transport: str, sync: bool = True) -> int:
    """Run the feed_filter server with specified transport."""
    async def run_server():
        """Inner async function to run the server and manage the event loop."""
        await get_database()

        sync_task = None
        if sync:
            sync_task = asyncio.create_task(startup_sync())
            sync_task.add_done_callback(log_startup_sync_result)

        try:
            if transport == "stdio":
                logger.info("Starting server with STDIO transport")
                await server.run_stdio_async()
            elif transport == "sse":
                logger.info(f"Starting server with SSE transport on {host}:{port}")
                server.settings.host = host
                server.settings.port = port
                await server.run_sse_async()
            elif transport == "streamable-http":
                logger.info(f"Starting server with Streamable HTTP transport on {host}:{port}")
                server.settings.host = host
                server.settings.port = port
                server.settings.streamable_http_path = "/mcp"
                await server.run_streamable_http_async()
            else:
                raise ValueError(f"Unknown transport: {transport}")
        finally:
            if sync_task is not None and not sync_task.done():
                sync_task.cancel()
            await close_database()

    try:
        asyncio.run(run_server())
        return 0
    except KeyboardInterrupt:
        logger.info("Server stopped by user")
        return 0
    except Exception as e:
        logger.error(f"Failed to start server: {e}", exc_info=True)
        return 1


def main_stdio() -> int:
    """Entry point for STDIO transport (convenience wrapper)."""
    return main.callback(port=3001, host="127.0.0.1", transport="stdio")


def main_http() -> int:
    """Entry point for Streamable HTTP transport (convenience wrapper)."""
    return main.callback(port=3001, host="127.0.0.1", transport="streamable-http")


if __name__ == "__main__":
    sys.exit(main())
