"""Entry point for running the MCP Redmine CLI with ``python -m mcp_redmine``."""

from mcp_redmine import main

if __name__ == "__main__":
    main(prog_name="mcp-redmine")
