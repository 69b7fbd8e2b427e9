# http_app.py - health endpoint next to the MCP server
from fastapi import FastAPI

from frappe_mcp.config import FrappeConfig
from frappe_mcp.router import ToolRouter


def create_app(config: FrappeConfig = None, router: ToolRouter = None) -> FastAPI:
    config = config or FrappeConfig.from_env()
    router = router or ToolRouter.from_config(config)
    app = FastAPI(title="Frappe MCP Server")

    @app.get("/health")
    async def health():
        """
        Report whether credentials are configured and the Frappe API answers.
        """
        valid, message = config.validate_credentials()
        api = await router.helpers.check_api_health() if valid else {
            "healthy": False, "message": "Skipped: credentials are not configured"}
        return {
            "status": "ok" if valid and api["healthy"] else "degraded",
            "service": "frappe-mcp-server",
            "credentials": {"valid": valid, "message": message},
            "api": api,
        }

    return app


# uvicorn frappe_mcp.http_app:app
app = create_app()
