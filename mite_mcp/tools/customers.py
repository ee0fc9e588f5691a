"""Customer tools (list, get, create, update, delete)."""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from ..api_client import MiteApiClient
from ..validation import OptionalBoolean, OptionalNumber, RequiredNumber
from .base import ToolDescriptor, payload, tool_set


class HourlyRatePerService(BaseModel):
    service_id: RequiredNumber
    hourly_rate: RequiredNumber


class ListCustomersParams(BaseModel):
    """Parameters for list_customers tool."""

    name: Optional[str] = None
    limit: OptionalNumber = None
    page: OptionalNumber = None
    archived: OptionalBoolean = None


class CreateCustomerParams(BaseModel):
    """Parameters for create_customer tool."""

    name: str
    note: Optional[str] = None
    archived: OptionalBoolean = None
    hourly_rate: OptionalNumber = None
    hourly_rates_per_service: Optional[List[HourlyRatePerService]] = None


class UpdateCustomerParams(BaseModel):
    """Parameters for update_customer tool."""

    id: RequiredNumber
    name: Optional[str] = None
    note: Optional[str] = None
    archived: OptionalBoolean = None
    hourly_rate: OptionalNumber = None
    hourly_rates_per_service: Optional[List[HourlyRatePerService]] = None


class CustomerIdParams(BaseModel):
    id: RequiredNumber


def create_customers_tools(client: MiteApiClient) -> Dict[str, ToolDescriptor]:
    """Build the customer tool set bound to ``client``."""

    async def list_customers(params: ListCustomersParams) -> Dict[str, Any]:
        path = "/customers/archived.json" if params.archived else "/customers.json"
        customers = await client.get(path, payload(params, "archived"))
        return {"customers": customers}

    async def get_customer(params: CustomerIdParams) -> Any:
        response = await client.get(f"/customers/{params.id}.json")
        return response["customer"]

    async def create_customer(params: CreateCustomerParams) -> Any:
        response = await client.post("/customers.json", {"customer": payload(params)})
        return response["customer"]

    async def update_customer(params: UpdateCustomerParams) -> Any:
        response = await client.patch(
            f"/customers/{params.id}.json", {"customer": payload(params, "id")}
        )
        return response.get("customer", response)

    async def delete_customer(params: CustomerIdParams) -> Dict[str, Any]:
        await client.delete(f"/customers/{params.id}.json")
        return {"success": True, "id": params.id}

    return tool_set(
        ToolDescriptor(
            name="list_customers",
            description="List active or archived customers",
            input_model=ListCustomersParams,
            execute=list_customers,
        ),
        ToolDescriptor(
            name="get_customer",
            description="Get a specific customer by ID",
            input_model=CustomerIdParams,
            execute=get_customer,
        ),
        ToolDescriptor(
            name="create_customer",
            description="Create a new customer (requires admin permissions)",
            input_model=CreateCustomerParams,
            execute=create_customer,
        ),
        ToolDescriptor(
            name="update_customer",
            description="Update an existing customer (requires admin permissions)",
            input_model=UpdateCustomerParams,
            execute=update_customer,
        ),
        ToolDescriptor(
            name="delete_customer",
            description="Delete a customer (requires admin permissions, customer must have no projects)",
            input_model=CustomerIdParams,
            execute=delete_customer,
        ),
    )
