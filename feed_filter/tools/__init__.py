"""MCP tools for feed_filter."""
