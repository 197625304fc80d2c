# =============================================================================
# core/models/base.py - Shared Model Configuration
# =============================================================================
# Request bodies accept both snake_case and camelCase keys so the back-office
# UI (which posts camelCase, e.g. {"tripId": ..., "driverId": ...}) and
# scripts (snake_case) can call the same endpoints.
# =============================================================================

from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr
from pydantic.alias_generators import to_camel


class RequestModel(BaseModel):
    """Base class for request bodies (snake_case or camelCase keys)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# Validated email, normalized to lowercase (auth treats addresses case-insensitively)
Email = Annotated[EmailStr, AfterValidator(str.lower)]
