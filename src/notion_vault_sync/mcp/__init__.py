"""MCP stdio server exposing Notion vault sync tools."""
