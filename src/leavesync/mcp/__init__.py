"""MCP tool server exposing the shared schedule to AI agents."""
