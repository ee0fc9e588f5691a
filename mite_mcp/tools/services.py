"""Service tools (list, get, create, update, delete)."""

from typing import Any, Dict, Optional

from pydantic import BaseModel

from ..api_client import MiteApiClient
from ..validation import OptionalBoolean, OptionalNumber, RequiredNumber
from .base import ToolDescriptor, payload, tool_set


class ListServicesParams(BaseModel):
    name: Optional[str] = None
    limit: OptionalNumber = None
    page: OptionalNumber = None
    archived: OptionalBoolean = None


class CreateServiceParams(BaseModel):
    name: str
    note: Optional[str] = None
    hourly_rate: OptionalNumber = None
    billable: OptionalBoolean = None
    archived: OptionalBoolean = None


class UpdateServiceParams(BaseModel):
    id: RequiredNumber
    name: Optional[str] = None
    note: Optional[str] = None
    hourly_rate: OptionalNumber = None
    billable: OptionalBoolean = None
    archived: OptionalBoolean = None
    update_hourly_rate_on_time_entries: OptionalBoolean = None


class ServiceIdParams(BaseModel):
    id: RequiredNumber


def create_services_tools(client: MiteApiClient) -> Dict[str, ToolDescriptor]:
    """Build the service tool set bound to ``client``."""

    async def list_services(params: ListServicesParams) -> Dict[str, Any]:
        path = "/services/archived.json" if params.archived else "/services.json"
        services = await client.get(path, payload(params, "archived"))
        return {"services": services}

    async def get_service(params: ServiceIdParams) -> Any:
        response = await client.get(f"/services/{params.id}.json")
        return response["service"]

    async def create_service(params: CreateServiceParams) -> Any:
        response = await client.post("/services.json", {"service": payload(params)})
        return response["service"]

    async def update_service(params: UpdateServiceParams) -> Any:
        response = await client.patch(
            f"/services/{params.id}.json", {"service": payload(params, "id")}
        )
        return response.get("service", response)

    async def delete_service(params: ServiceIdParams) -> Dict[str, Any]:
        await client.delete(f"/services/{params.id}.json")
        return {"success": True, "id": params.id}

    return tool_set(
        ToolDescriptor(
            name="list_services",
            description="List active or archived services",
            input_model=ListServicesParams,
            execute=list_services,
        ),
        ToolDescriptor(
            name="get_service",
            description="Get a specific service by ID",
            input_model=ServiceIdParams,
            execute=get_service,
        ),
        ToolDescriptor(
            name="create_service",
            description="Create a new service (requires admin permissions)",
            input_model=CreateServiceParams,
            execute=create_service,
        ),
        ToolDescriptor(
            name="update_service",
            description="Update an existing service (requires admin permissions)",
            input_model=UpdateServiceParams,
            execute=update_service,
        ),
        ToolDescriptor(
            name="delete_service",
            description="Delete a service (requires admin permissions, service must have no time entries)",
            input_model=ServiceIdParams,
            execute=delete_service,
        ),
    )
