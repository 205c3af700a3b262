"""
Pydantic schemas — Request bodies.
"""

from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class HomologationCreateRequest(BaseModel):
    owner_full_name: str = Field(min_length=1, max_length=200)
    owner_national_id: str = Field(min_length=1, max_length=50)
    owner_email: str | None = None
    owner_phone: str | None = Field(default=None, pattern=r"^[0-9+() -]+$")
    vehicle_type: str = "trailer"
    brand: str = ""
    model: str = ""
    year: int | None = Field(default=None, ge=1900, le=2100)
    vin: str | None = None
    license_plate: str | None = None
    axles: int | None = Field(default=None, ge=1)
    notes: str | None = None


class HomologationUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    expected_version: int = Field(alias="expectedVersion", ge=1)
    owner_full_name: str | None = None
    owner_national_id: str | None = None
    owner_email: str | None = None
    owner_phone: str | None = Field(default=None, pattern=r"^[0-9+() -]+$")
    vehicle_type: str | None = None
    brand: str | None = None
    model: str | None = None
    year: int | None = Field(default=None, ge=1900, le=2100)
    vin: str | None = None
    license_plate: str | None = None
    axles: int | None = Field(default=None, ge=1)
    notes: str | None = None

    def changes(self) -> dict:
        return self.model_dump(exclude={"expected_version"}, exclude_unset=True)


class PreferenceRequestBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    homologation_id: str | None = Field(default=None, alias="homologationId")
    amount: Decimal | None = None
    description: str | None = None


class TransitionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    target_status: str = Field(alias="targetStatus")
    expected_version: int = Field(alias="expectedVersion")
    reason: str | None = None


class AuthRequest(BaseModel):
    password: str
