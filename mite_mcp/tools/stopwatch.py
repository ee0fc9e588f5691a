"""Stopwatch (tracker) tools.

mite keeps a single running stopwatch per user, attached to a time entry.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from ..api_client import MiteApiClient
from ..validation import OptionalNumber, RequiredNumber
from .base import ToolDescriptor, payload, tool_set


class GetStopwatchStatusParams(BaseModel):
    pass


class StartStopwatchParams(BaseModel):
    """Parameters for start_stopwatch tool."""

    id: RequiredNumber = Field(description="ID of the time entry to start tracking")


class StopStopwatchParams(BaseModel):
    """Parameters for stop_stopwatch tool."""

    id: RequiredNumber = Field(description="ID of the time entry that is currently being tracked")


class QuickStartStopwatchParams(BaseModel):
    """Parameters for quick_start_stopwatch tool."""

    note: Optional[str] = None
    project_id: OptionalNumber = None
    service_id: OptionalNumber = None


def today() -> str:
    return datetime.now(timezone.utc).date().isoformat()


def create_stopwatch_tools(client: MiteApiClient) -> Dict[str, ToolDescriptor]:
    """Build the stopwatch tool set bound to ``client``."""

    async def get_stopwatch_status(params: GetStopwatchStatusParams) -> Any:
        return await client.get("/tracker.json")

    async def start_stopwatch(params: StartStopwatchParams) -> Any:
        response = await client.patch(f"/tracker/{params.id}.json", {})
        return response.get("tracking_time_entry")

    async def stop_stopwatch(params: StopStopwatchParams) -> Dict[str, Any]:
        await client.delete(f"/tracker/{params.id}.json")
        return {"success": True, "stopped_id": params.id}

    async def quick_start_stopwatch(params: QuickStartStopwatchParams) -> Any:
        created = await client.post(
            "/time_entries.json",
            {"time_entry": {"date_at": today(), "minutes": 0, **payload(params)}},
        )
        entry_id = created["time_entry"]["id"]
        tracking = await client.patch(f"/tracker/{entry_id}.json", {})
        return tracking.get("tracking_time_entry")

    return tool_set(
        ToolDescriptor(
            name="get_stopwatch_status",
            description="Get the current stopwatch status (running or stopped time entry)",
            input_model=GetStopwatchStatusParams,
            execute=get_stopwatch_status,
        ),
        ToolDescriptor(
            name="start_stopwatch",
            description="Start the stopwatch for a time entry",
            input_model=StartStopwatchParams,
            execute=start_stopwatch,
        ),
        ToolDescriptor(
            name="stop_stopwatch",
            description="Stop the currently running stopwatch",
            input_model=StopStopwatchParams,
            execute=stop_stopwatch,
        ),
        ToolDescriptor(
            name="quick_start_stopwatch",
            description="Start stopwatch with a new time entry for today",
            input_model=QuickStartStopwatchParams,
            execute=quick_start_stopwatch,
        ),
    )
