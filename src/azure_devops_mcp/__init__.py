"""MCP server exposing Azure DevOps pull request review, projects, repositories and work items."""

__version__ = "0.1.0"
