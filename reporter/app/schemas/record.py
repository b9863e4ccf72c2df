"""
Student record as returned by the records backend.

Decoding is tolerant: unknown fields are ignored, and absent or ``null``
fields fall back to the zero value of their type. No field is mandatory.
``admission_date`` is kept verbatim and only reformatted for display.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Record(BaseModel):
    id: int = 0
    name: str = ""
    email: str = ""
    phone: str = ""
    class_name: str = Field("", alias="class")
    section: str = ""
    roll: int = 0
    system_access: bool = Field(False, alias="systemAccess")

    guardian_name: str = Field("", alias="guardianName")
    guardian_phone: str = Field("", alias="guardianPhone")
    relation_of_guardian: str = Field("", alias="relationOfGuardian")

    current_address: str = Field("", alias="currentAddress")
    permanent_address: str = Field("", alias="permanentAddress")
    admission_date: str = Field("", alias="admissionDate")

    reporter_name: str = Field("", alias="reporterName")

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("*", mode="before")
    @classmethod
    def _null_is_zero_value(cls, value: Any, info) -> Any:
        # JSON null decodes to the field's zero value, same as an absent key
        if value is None:
            return cls.model_fields[info.field_name].default
        return value
