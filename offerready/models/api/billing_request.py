# offerready/models/api/billing_request.py
"""
Billing request models.

Fields are optional strings; the provisioning service validates them and
owns the error messages.
"""

from pydantic import BaseModel, ConfigDict, Field


class CheckoutRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    price_type: str | None = Field(None, alias="priceType", description="monthly | annual")
    return_url: str | None = Field(None, alias="returnUrl", description="Page to come back to")


class PortalRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    return_url: str | None = Field(None, alias="returnUrl")
