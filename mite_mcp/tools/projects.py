"""Project tools (list, get, create, update, delete)."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from ..api_client import MiteApiClient
from ..validation import OptionalBoolean, OptionalNumber, RequiredNumber
from .base import ToolDescriptor, payload, tool_set
from .customers import HourlyRatePerService


class ListProjectsParams(BaseModel):
    """Parameters for list_projects tool."""

    name: Optional[str] = None
    customer_id: OptionalNumber = None
    limit: OptionalNumber = None
    page: OptionalNumber = None
    archived: OptionalBoolean = None


class CreateProjectParams(BaseModel):
    """Parameters for create_project tool."""

    name: str
    note: Optional[str] = None
    customer_id: OptionalNumber = None
    budget: OptionalNumber = None
    budget_type: Optional[str] = Field(
        default=None, description="minutes, minutes_per_month, cents or cents_per_month"
    )
    archived: OptionalBoolean = None
    hourly_rate: OptionalNumber = None
    hourly_rates_per_service: Optional[List[HourlyRatePerService]] = None


class UpdateProjectParams(CreateProjectParams):
    """Parameters for update_project tool."""

    id: RequiredNumber
    name: Optional[str] = None
    update_hourly_rate_on_time_entries: OptionalBoolean = None


class ProjectIdParams(BaseModel):
    id: RequiredNumber


def create_projects_tools(client: MiteApiClient) -> Dict[str, ToolDescriptor]:
    """Build the project tool set bound to ``client``."""

    async def list_projects(params: ListProjectsParams) -> Dict[str, Any]:
        path = "/projects/archived.json" if params.archived else "/projects.json"
        projects = await client.get(path, payload(params, "archived"))
        return {"projects": projects}

    async def get_project(params: ProjectIdParams) -> Any:
        response = await client.get(f"/projects/{params.id}.json")
        return response["project"]

    async def create_project(params: CreateProjectParams) -> Any:
        response = await client.post("/projects.json", {"project": payload(params)})
        return response["project"]

    async def update_project(params: UpdateProjectParams) -> Any:
        response = await client.patch(
            f"/projects/{params.id}.json", {"project": payload(params, "id")}
        )
        return response.get("project", response)

    async def delete_project(params: ProjectIdParams) -> Dict[str, Any]:
        await client.delete(f"/projects/{params.id}.json")
        return {"success": True, "id": params.id}

    return tool_set(
        ToolDescriptor(
            name="list_projects",
            description="List active or archived projects",
            input_model=ListProjectsParams,
            execute=list_projects,
        ),
        ToolDescriptor(
            name="get_project",
            description="Get a specific project by ID",
            input_model=ProjectIdParams,
            execute=get_project,
        ),
        ToolDescriptor(
            name="create_project",
            description="Create a new project (requires admin permissions)",
            input_model=CreateProjectParams,
            execute=create_project,
        ),
        ToolDescriptor(
            name="update_project",
            description="Update an existing project (requires admin permissions)",
            input_model=UpdateProjectParams,
            execute=update_project,
        ),
        ToolDescriptor(
            name="delete_project",
            description="Delete a project (requires admin permissions, project must have no time entries)",
            input_model=ProjectIdParams,
            execute=delete_project,
        ),
    )
