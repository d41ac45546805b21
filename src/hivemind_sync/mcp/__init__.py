"""MCP stdio server exposing the document sharing tools."""
