"""
appext: extension host with an MCP management surface.

Loads extensions from the configured directory, restores their enabled
state from the persisted settings, activates them, and serves management
tools over MCP stdio so a client can list and toggle them.

Usage:
    # Run directly
    python -m appext.server

    # Or via the installed command
    appext
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from appext import __version__
from appext.core.config import HostConfig, ensure_dirs
from appext.extensions.base import AppExtension
from appext.extensions.registry import ExtensionRegistry
from appext.extensions.settings import ExtensionSettings
from appext.tools import extensions as ext_tools

logger = logging.getLogger("appext")

# Create MCP server
app = Server("appext")

# Populated by setup_host()
registry: Optional[ExtensionRegistry] = None
settings: Optional[ExtensionSettings] = None


# ─────────────────────────────────────────────────────────────
# Host setup
# ─────────────────────────────────────────────────────────────

def setup_host(config: HostConfig, capability: type = AppExtension) -> tuple[ExtensionRegistry, ExtensionSettings]:
    """
    Load extensions, restore their persisted state and activate them.

    A missing extensions directory is logged and leaves the registry empty.

    / Carga extensiones, restaura su estado y las activa.
    """
    global registry, settings

    registry = ExtensionRegistry(suffixes=config.extensions.archive_suffixes)
    try:
        registry.load_extensions(
            Path(config.extensions.directory),
            capability,
            app_name=config.app_name,
            min_version=config.min_version,
        )
    except (FileNotFoundError, NotADirectoryError) as e:
        logger.warning(f"No extensions loaded: {e}")

    settings = ExtensionSettings(
        config.app_name or "appext",
        config.extensions.settings_file,
        registry,
    )
    settings.load()

    if config.extensions.activate_on_start:
        registry.activate_all()

    return registry, settings


# ─────────────────────────────────────────────────────────────
# Tool Definitions
# ─────────────────────────────────────────────────────────────

@app.list_tools()
async def list_tools() -> list[Tool]:
    """Register all extension management tools with the MCP server."""
    return [
        Tool(
            name="list_extensions",
            description="List loaded extensions sorted by name, with their enabled state.",
            inputSchema={
                "type": "object",
                "properties": {
                    "enabled_only": {
                        "type": "boolean",
                        "description": "Only list enabled extensions.",
                        "default": False,
                    },
                },
            },
        ),
        Tool(
            name="get_extension_info",
            description="Show the full manifest and configuration entries of one extension.",
            inputSchema={
                "type": "object",
                "properties": {
                    "identity": {
                        "type": "string",
                        "description": "Fully qualified extension class name.",
                    },
                },
                "required": ["identity"],
            },
        ),
        Tool(
            name="set_extension_enabled",
            description=(
                "Enable or disable an extension. Fires its activation hook "
                "and saves the settings file."
            ),
            inputSchema={
                "type": "object",
                "properties": {
                    "identity": {
                        "type": "string",
                        "description": "Fully qualified extension class name.",
                    },
                    "enabled": {
                        "type": "boolean",
                        "description": "Target state.",
                    },
                },
                "required": ["identity", "enabled"],
            },
        ),
        Tool(
            name="get_extension_settings",
            description="Show configuration entries visible for the currently enabled extensions.",
            inputSchema={"type": "object", "properties": {}},
        ),
    ]


@app.call_tool()
async def call_tool(name: str, arguments: dict) -> list[TextContent]:
    """Execute a tool and return its result as JSON text."""
    try:
        result = await _dispatch_tool(name, arguments or {})
    except Exception as e:
        logger.error(f"Tool execution error: {name}: {e}")
        result = {"error": str(e)}

    return [TextContent(
        type="text",
        text=json.dumps(result, indent=2, ensure_ascii=False, default=str),
    )]


async def _dispatch_tool(name: str, arguments: dict) -> dict:
    """Route tool call to the correct function."""
    if registry is None or settings is None:
        return {"error": "Extension host is not initialized"}

    tool_map = {
        "list_extensions": lambda args: ext_tools.extensions_list(
            registry,
            enabled_only=args.get("enabled_only", False),
        ),
        "get_extension_info": lambda args: ext_tools.extension_info(
            registry,
            identity=args["identity"],
        ),
        "set_extension_enabled": lambda args: ext_tools.extension_set_enabled(
            settings,
            identity=args["identity"],
            enabled=bool(args["enabled"]),
        ),
        "get_extension_settings": lambda args: ext_tools.extension_settings(settings),
    }

    handler = tool_map.get(name)
    if handler is None:
        return {"error": f"Unknown tool: {name}"}
    return await handler(arguments)


# ─────────────────────────────────────────────────────────────
# Entry Point
# ─────────────────────────────────────────────────────────────

async def _run_server():
    """Run the MCP server using stdio transport."""
    async with stdio_server() as (read_stream, write_stream):
        init_options = app.create_initialization_options()
        await app.run(read_stream, write_stream, init_options)


def main():
    """Start the appext MCP server."""
    ensure_dirs()
    config = HostConfig.load()

    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    )

    logger.info(f"appext v{__version__} starting...")
    logger.info(f"Extensions directory: {config.extensions.directory}")

    host_registry, host_settings = setup_host(config)
    logger.info(f"{host_registry.loaded_count} extension(s) loaded, "
                f"{len(host_registry.enabled_extensions())} enabled")

    try:
        asyncio.run(_run_server())
    finally:
        host_registry.deactivate_all()
        host_settings.save()


if __name__ == "__main__":
    main()
