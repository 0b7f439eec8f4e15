"""Kntor MCP Server - Model Context Protocol gateway for the Kntor.io ERP."""

__version__ = "1.0.0"
