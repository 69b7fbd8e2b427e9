# run_server_dev.py
# Wrapper so MCP Inspector can find the server object

import sys, os

ROOT = os.path.dirname(os.path.abspath(__file__))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from frappe_mcp.server import create_server

mcp = create_server()

# MCP Inspector runs the server itself; do not call mcp.run() here.
