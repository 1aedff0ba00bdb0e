#!/usr/bin/env python3
"""
Registers the configured tools with Ultravox so calls can reference them by name.

Tools are read from the ULTRAVOX_TOOL_<n>_* environment slots. When
ULTRAVOX_TOOLS_TO_REGISTER is set only the listed tools are registered. Tools that
already exist are skipped; a failure on one tool does not stop the others.

Usage:
    python setup_tools.py
"""

import asyncio
import os
import sys
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import dotenv
import httpx

sys.path.append(str(Path(__file__).parent))

from app.config.logging_config import configure_logging
from app.config.settings import Settings
from app.services.tool_registry import ToolRegistry
from app.services.ultravox_client import UltravoxClient

dotenv.load_dotenv()

logger = configure_logging()


async def setup_tools(
    settings: Settings,
    registry: ToolRegistry,
    client: Optional[UltravoxClient] = None,
) -> List[Optional[Dict[str, Any]]]:
    """
    Register tools one by one.

    Args:
        settings: Application settings
        registry: Tools available for registration
        client: Ultravox client, created from settings when omitted

    Returns:
        One entry per attempted tool: the API response, {"exists": True}, or None on failure
    """
    client = client or UltravoxClient(settings)
    names = list(settings.tools_to_register) or registry.names()
    logger.info(f"Using API URL: {settings.ultravox_api_base}")
    logger.info(f"Registering {len(names)} tools: {', '.join(names)}")

    results: List[Optional[Dict[str, Any]]] = []
    try:
        for name in names:
            tool = registry.get(name)
            if tool is None:
                logger.warning(f'Tool "{name}" not found in configuration')
                continue
            try:
                results.append(await client.register_tool(tool))
            except httpx.HTTPStatusError as e:
                logger.error(
                    f"Error registering tool {name}: HTTP {e.response.status_code} {e.response.text}"
                )
                results.append(None)
            except httpx.HTTPError as e:
                logger.error(f"No response received for tool {name}: {e}")
                results.append(None)
    finally:
        await client.aclose()

    logger.info("Tool setup complete")
    return results


def main(environ: Optional[Mapping[str, str]] = None) -> int:
    env = os.environ if environ is None else environ
    settings = Settings.from_env(env)
    if not settings.ultravox_api_key:
        logger.error("ULTRAVOX_API_KEY environment variable is not set")
        return 1

    registry = ToolRegistry.load(env)
    results = asyncio.run(setup_tools(settings, registry))
    return 0 if all(result is not None for result in results) else 1


if __name__ == "__main__":
    sys.exit(main())
