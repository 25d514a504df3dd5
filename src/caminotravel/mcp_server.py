"""Camino travel MCP server: the assistant's accommodation tools over stdio."""

from typing import Any, Dict, Literal

from mcp.server.fastmcp import FastMCP

from .agent.tools import build_tool_registry

TOOLS = build_tool_registry()

mcp = FastMCP("Camino Travel")


async def call_tool_text(name: str, arguments: Dict[str, Any]) -> str:
    """Run a registry tool and return the text of its result."""
    result = await TOOLS[name]({k: v for k, v in arguments.items() if v is not None})
    return result["content"][0]["text"]


@mcp.tool(name="search_accommodation", description=TOOLS["search_accommodation"].description)
async def search_accommodation(
    destination: str,
    checkIn: str,
    checkOut: str,
    guests: int = 2,
    rooms: int = 1,
    currency: str = "EUR",
) -> str:
    return await call_tool_text(
        "search_accommodation",
        {
            "destination": destination,
            "checkIn": checkIn,
            "checkOut": checkOut,
            "guests": guests,
            "rooms": rooms,
            "currency": currency,
        },
    )


@mcp.tool(name="get_accommodation_list", description=TOOLS["get_accommodation_list"].description)
async def get_accommodation_list(
    location: str = "",
    minStars: int | None = None,
    maxStars: int | None = None,
    propertyType: Literal[
        "hotel", "apartment", "hostel", "resort", "villa", "guesthouse", "bnb"
    ] | None = None,
    refresh: bool = False,
) -> str:
    """Pass an empty string for `location` to list the whole catalog."""
    return await call_tool_text(
        "get_accommodation_list",
        {
            "location": location or None,
            "minStars": minStars,
            "maxStars": maxStars,
            "propertyType": propertyType,
            "refresh": refresh,
        },
    )


@mcp.tool(name="get_accommodation_info", description=TOOLS["get_accommodation_info"].description)
async def get_accommodation_info(productCode: str) -> str:
    return await call_tool_text("get_accommodation_info", {"productCode": productCode})


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
