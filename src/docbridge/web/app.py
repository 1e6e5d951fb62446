"""FastAPI application exposing the bridge session over HTTP."""

from __future__ import annotations

import logging
import os
import sys
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from docbridge import __version__
from docbridge.mcp.config import BridgeSettings, ConfigError, configure_logging
from docbridge.mcp.integration.bridge import BridgeSession
from docbridge.mcp.utilities.uri_template import MissingParameterError

logger = logging.getLogger(__name__)


class ToolCallBody(BaseModel):
    name: str
    arguments: dict[str, Any] | None = None


class ResourceReadBody(BaseModel):
    uri: str
    params: dict[str, str] | None = None


class PromptBody(BaseModel):
    name: str
    arguments: dict[str, Any] | None = None


class QueryBody(BaseModel):
    query: str = Field(min_length=1)


def error_response(message: str, status_code: int = 500) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def create_app(
    settings: BridgeSettings | None = None,
    session: BridgeSession | None = None,
) -> FastAPI:
    """
    Build the application.

    Without an explicit session one is built from settings at startup, and
    settings default to the environment, so a missing API key stops the
    server before it accepts requests.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Starting docbridge v{__version__}")
        bridge = session
        if bridge is None:
            bridge = BridgeSession.from_settings(settings or BridgeSettings.from_env())
        app.state.session = bridge
        yield
        await bridge.close()
        logger.info("docbridge stopped")

    app = FastAPI(
        title="docbridge",
        description="Tool-orchestration bridge between an MCP server and a chat model",
        version=__version__,
        lifespan=lifespan,
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        detail = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
        location = ".".join(str(part) for part in errors[0].get("loc", ())) if errors else ""
        message = f"{location}: {detail}" if location else detail
        return error_response(message, status_code=400)

    def get_session(request: Request) -> BridgeSession:
        return request.app.state.session

    @app.get("/api/health", tags=["Health"])
    async def health(request: Request):
        return {"status": "ok", "server": get_session(request).is_connected}

    @app.get("/api/mcp/tools", tags=["MCP"])
    async def list_tools(request: Request):
        try:
            tools = await get_session(request).list_tools()
        except Exception:
            logger.exception("Error fetching tools")
            return error_response("Failed to fetch tools")
        return {"tools": [tool.to_dict() for tool in tools]}

    @app.post("/api/mcp/tools", tags=["MCP"])
    async def call_tool(body: ToolCallBody, request: Request):
        try:
            return await get_session(request).call_tool(body.name, body.arguments)
        except Exception:
            logger.exception(f"Error calling tool {body.name}")
            return error_response("Failed to call tool")

    @app.get("/api/mcp/resources", tags=["MCP"])
    async def list_resources(request: Request):
        bridge = get_session(request)
        try:
            resources = await bridge.list_resources()
            templates = await bridge.list_resource_templates()
        except Exception:
            logger.exception("Error fetching resources")
            return error_response("Failed to fetch resources")
        return {
            "resources": [resource.to_dict() for resource in resources],
            "resourceTemplates": [template.to_dict() for template in templates],
        }

    @app.post("/api/mcp/resources", tags=["MCP"])
    async def read_resource(body: ResourceReadBody, request: Request):
        try:
            return await get_session(request).read_resource(body.uri, body.params)
        except MissingParameterError as e:
            return error_response(str(e), status_code=400)
        except Exception:
            logger.exception(f"Error reading resource {body.uri}")
            return error_response("Failed to read resource")

    @app.get("/api/mcp/prompts", tags=["MCP"])
    async def list_prompts(request: Request):
        try:
            prompts = await get_session(request).list_prompts()
        except Exception:
            logger.exception("Error fetching prompts")
            return error_response("Failed to fetch prompts")
        return {"prompts": [prompt.to_dict() for prompt in prompts]}

    @app.post("/api/mcp/prompts", tags=["MCP"])
    async def get_prompt(body: PromptBody, request: Request):
        try:
            return await get_session(request).get_prompt(body.name, body.arguments)
        except Exception:
            logger.exception(f"Error getting prompt {body.name}")
            return error_response("Failed to get prompt")

    @app.post("/api/mcp/query", tags=["MCP"])
    async def query(body: QueryBody, request: Request):
        try:
            result = await get_session(request).query(body.query)
        except Exception:
            logger.exception("Error processing query")
            return error_response("Failed to process query")
        return result.to_dict()

    return app


def main():
    """Run the server with uvicorn."""
    import uvicorn

    try:
        settings = BridgeSettings.from_env()
    except ConfigError as e:
        print(f"docbridge: {e}", file=sys.stderr)
        sys.exit(1)

    configure_logging(settings.log_level)
    uvicorn.run(
        create_app(settings),
        host=os.environ.get("DOCBRIDGE_HOST", "127.0.0.1"),
        port=int(os.environ.get("DOCBRIDGE_PORT", "8000")),
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
