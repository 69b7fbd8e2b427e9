# server.py - FastMCP server exposing the Frappe tools
import inspect
import logging
import sys
from typing import Any, Dict, Optional, Union

from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError

from frappe_mcp.config import FrappeConfig
from frappe_mcp.router import ToolRouter
from frappe_mcp.tools import TOOLS

logger = logging.getLogger("frappe_mcp")

JSON_TYPES = {"string": str, "integer": int, "boolean": bool, "object": dict, "array": list}


def _annotation(prop: Dict[str, Any]):
    kinds = prop["type"] if isinstance(prop["type"], list) else [prop["type"]]
    types = tuple(JSON_TYPES[k] for k in kinds)
    return types[0] if len(types) == 1 else Union[types]


def tool_signature(name: str) -> inspect.Signature:
    """Signature FastMCP reads to build the tool's input schema."""
    tool = TOOLS[name]
    params = []
    for key, prop in tool["properties"].items():
        annotation = _annotation(prop)
        if key in tool["required"]:
            params.append(inspect.Parameter(key, inspect.Parameter.KEYWORD_ONLY,
                                            annotation=annotation))
        else:
            params.append(inspect.Parameter(key, inspect.Parameter.KEYWORD_ONLY,
                                            default=None, annotation=Optional[annotation]))
    return inspect.Signature(params)


def make_handler(router: ToolRouter, name: str):
    async def handler(**arguments):
        res = await router.call_tool(name, arguments)
        text = "\n".join(item["text"] for item in res["content"])
        if res["isError"]:
            raise ToolError(text)
        return text

    handler.__name__ = name
    handler.__signature__ = tool_signature(name)
    return handler


def create_server(config: FrappeConfig = None, router: ToolRouter = None) -> FastMCP:
    if router is None:
        router = ToolRouter.from_config(config or FrappeConfig.from_env())
    mcp = FastMCP("Frappe-MCP")
    for name, tool in TOOLS.items():
        mcp.tool(name=name, description=tool["description"])(make_handler(router, name))
    return mcp


def main(argv=None):
    argv = sys.argv[1:] if argv is None else argv
    logging.basicConfig(
        level=logging.INFO,
        stream=sys.stderr,     # stdout belongs to the stdio transport
        format="%(levelname)s:%(name)s:%(message)s"
    )

    config = FrappeConfig.from_env()
    config.log_summary()
    valid, message = config.validate_credentials()
    if valid:
        logger.info(message)
    else:
        logger.warning("%s Tools will fail until FRAPPE_API_KEY and FRAPPE_API_SECRET are set.",
                       message)

    transport = argv[0] if argv else "stdio"
    logger.info("Starting Frappe MCP server using transport=%s", transport)
    create_server(config).run(transport)


if __name__ == "__main__":
    main()
