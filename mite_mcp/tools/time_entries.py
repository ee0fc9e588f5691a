"""Time entry tools.

Provides:
- list_time_entries: filtered listing, optionally grouped
- get_daily_time_entries: current user's entries for a day
- get_time_entry / create_time_entry / update_time_entry / delete_time_entry
- get_time_entry_summary: grouped totals
"""

from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field, model_validator

from ..api_client import MiteApiClient
from ..validation import OptionalBoolean, OptionalNumber, RequiredNumber
from .base import ToolDescriptor, payload, tool_set


DEFAULT_LIST_LIMIT = 500

GroupBy = Literal["customer", "project", "service", "user", "day", "week", "month", "year"]
SummaryGroupBy = Literal["customer", "project", "service", "user"]


class ListTimeEntriesParams(BaseModel):
    """Parameters for list_time_entries tool."""

    user_id: OptionalNumber = None
    customer_id: OptionalNumber = None
    project_id: OptionalNumber = None
    service_id: OptionalNumber = None
    from_: Optional[str] = Field(default=None, alias="from", description="Start date (YYYY-MM-DD)")
    to: Optional[str] = Field(default=None, description="End date (YYYY-MM-DD)")
    billable: OptionalBoolean = None
    locked: OptionalBoolean = None
    limit: OptionalNumber = None
    page: OptionalNumber = None
    group_by: Optional[GroupBy] = None


class GetDailyTimeEntriesParams(BaseModel):
    """Parameters for get_daily_time_entries tool."""

    at: Optional[str] = Field(default=None, description="Date in YYYY-MM-DD format")


class TimeEntryFields(BaseModel):
    date_at: Optional[str] = Field(default=None, description="Date in YYYY-MM-DD format")
    minutes: OptionalNumber = None
    note: Optional[str] = None
    user_id: OptionalNumber = None
    project_id: OptionalNumber = None
    service_id: OptionalNumber = None
    locked: OptionalBoolean = None


class CreateTimeEntryParams(TimeEntryFields):
    """Parameters for create_time_entry tool."""


class UpdateTimeEntryParams(TimeEntryFields):
    """Parameters for update_time_entry tool. Accepts ``id`` or ``time_entry_id``."""

    id: OptionalNumber = None
    time_entry_id: OptionalNumber = None

    @model_validator(mode='after')
    def validate_entry_id(self):
        if not (self.id or self.time_entry_id):
            raise ValueError("Either 'id' or 'time_entry_id' must be provided")
        return self


class GetTimeEntrySummaryParams(BaseModel):
    """Parameters for get_time_entry_summary tool."""

    group_by: SummaryGroupBy
    from_: Optional[str] = Field(default=None, alias="from")
    to: Optional[str] = None
    user_id: OptionalNumber = None
    customer_id: OptionalNumber = None
    project_id: OptionalNumber = None
    service_id: OptionalNumber = None


class TimeEntryIdParams(BaseModel):
    id: RequiredNumber


def _filters(params: BaseModel, *exclude: str) -> Dict[str, Any]:
    return params.model_dump(exclude_none=True, exclude=set(exclude), by_alias=True)


def create_time_entries_tools(client: MiteApiClient) -> Dict[str, ToolDescriptor]:
    """Build the time entry tool set bound to ``client``."""

    async def list_time_entries(params: ListTimeEntriesParams) -> Dict[str, Any]:
        filters = _filters(params, "group_by", "limit")

        if params.group_by:
            # Grouped results are aggregates, the limit does not apply
            entries = await client.get(
                "/time_entries.json", {**filters, "group_by": params.group_by}
            )
            return {"entries": entries, "grouped": True, "group_by": params.group_by}

        limit = params.limit or DEFAULT_LIST_LIMIT
        entries = await client.get("/time_entries.json", {**filters, "limit": limit})
        result: Dict[str, Any] = {"entries": entries, "grouped": False}
        if len(entries) == limit:
            result["warning"] = (
                f"Result set limited to {limit} entries. Use more specific filters "
                "(user_id, project_id, customer_id) to see all relevant entries."
            )
        return result

    async def get_daily_time_entries(params: GetDailyTimeEntriesParams) -> Dict[str, Any]:
        entries = await client.get("/daily.json", {"at": params.at} if params.at else None)
        return {"entries": entries}

    async def get_time_entry(params: TimeEntryIdParams) -> Any:
        response = await client.get(f"/time_entries/{params.id}.json")
        return response["time_entry"]

    async def create_time_entry(params: CreateTimeEntryParams) -> Any:
        response = await client.post("/time_entries.json", {"time_entry": payload(params)})
        return response["time_entry"]

    async def update_time_entry(params: UpdateTimeEntryParams) -> Any:
        entry_id = params.id or params.time_entry_id
        response = await client.patch(
            f"/time_entries/{entry_id}.json",
            {"time_entry": payload(params, "id", "time_entry_id")},
        )
        return response.get("time_entry", response)

    async def delete_time_entry(params: TimeEntryIdParams) -> Dict[str, Any]:
        await client.delete(f"/time_entries/{params.id}.json")
        return {"success": True, "id": params.id}

    async def get_time_entry_summary(params: GetTimeEntrySummaryParams) -> Dict[str, Any]:
        filters = _filters(params, "group_by")
        entries = await client.get(
            "/time_entries.json", {**filters, "group_by": params.group_by}
        )
        return {
            "entries": entries,
            "grouped": True,
            "group_by": params.group_by,
            "summary": f"Time entries grouped by {params.group_by}",
        }

    return tool_set(
        ToolDescriptor(
            name="list_time_entries",
            description=(
                "List time entries with filters. IMPORTANT: Always use specific filters when "
                "available (user_id, project_id, customer_id) to avoid large result sets. When "
                "a user mentions a specific person, project, or customer, include those IDs as "
                "filters. Use get_daily_time_entries for current user's today entries. To see "
                "totals by customer/project/user, use group_by parameter (e.g., group_by: "
                "'customer' or 'project' or 'user')."
            ),
            input_model=ListTimeEntriesParams,
            execute=list_time_entries,
        ),
        ToolDescriptor(
            name="get_daily_time_entries",
            description=(
                "Get time entries for today or a specific date for the current user. USE THIS "
                'for "my time entries" or when no specific user is mentioned.'
            ),
            input_model=GetDailyTimeEntriesParams,
            execute=get_daily_time_entries,
        ),
        ToolDescriptor(
            name="get_time_entry",
            description="Get a specific time entry by ID",
            input_model=TimeEntryIdParams,
            execute=get_time_entry,
        ),
        ToolDescriptor(
            name="create_time_entry",
            description="Create a new time entry",
            input_model=CreateTimeEntryParams,
            execute=create_time_entry,
        ),
        ToolDescriptor(
            name="update_time_entry",
            description="Update an existing time entry",
            input_model=UpdateTimeEntryParams,
            execute=update_time_entry,
        ),
        ToolDescriptor(
            name="delete_time_entry",
            description="Delete a time entry",
            input_model=TimeEntryIdParams,
            execute=delete_time_entry,
        ),
        ToolDescriptor(
            name="get_time_entry_summary",
            description=(
                "Get summarized/grouped time entries by customer, project, service, or user. "
                "Use this when you need totals or summaries rather than individual entries."
            ),
            input_model=GetTimeEntrySummaryParams,
            execute=get_time_entry_summary,
        ),
    )
