"""Tool catalog endpoint."""

from fastapi import APIRouter

from analyzers import ALIASES, tool_catalog
from api.schemas import ToolInfo, ToolListResponse

router = APIRouter(prefix="/tools", tags=["Tools"])


@router.get(
    "",
    response_model=ToolListResponse,
    summary="List analysis tools",
    description="The analyzer catalog with display names and accepted aliases.",
)
async def list_tools() -> ToolListResponse:
    tools = [ToolInfo(tool_id=item["toolId"], name=item["name"]) for item in tool_catalog()]
    return ToolListResponse(tools=tools, aliases=ALIASES, count=len(tools))
