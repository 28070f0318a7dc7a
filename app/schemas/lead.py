from pydantic import BaseModel, Field, TypeAdapter
from typing import Annotated, Literal, Optional, Union
from decimal import Decimal


class ConversionFromCheckout(BaseModel):
    source: Literal["platform_checkout"] = "platform_checkout"
    product_id: str
    purchase_id: str
    purchase_amount: Decimal
    commission_amount: Decimal


class ConversionFromExternalWebhook(BaseModel):
    source: Literal["external_purchase_webhook"] = "external_purchase_webhook"
    product_id: str
    purchase_id: str
    purchase_amount: Decimal
    commission_amount: Decimal
    external_purchase_id: Optional[str] = None


LeadData = Annotated[
    Union[ConversionFromCheckout, ConversionFromExternalWebhook],
    Field(discriminator="source"),
]

lead_data_adapter = TypeAdapter(LeadData)


def dump_lead_data(data) -> dict:
    """Validate and serialize lead metadata for the JSON column."""
    return lead_data_adapter.dump_python(lead_data_adapter.validate_python(data), mode="json")
