import json
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field, field_validator, ConfigDict


class CategorizationLog(BaseModel):
    """
    Pydantic model for CategorizationLog data validation and serialization.

    Maps to the 'categorization_logs' database table schema.
    Append-only audit record of one classification attempt. Rows are never
    updated after insert.
    """
    id: int | None = None
    material_id: str
    supercategory: str | None = None
    predicted_category: str | None = None
    validation_category: str | None = None
    confidence: float | None = None
    validation_confidence: float | None = None
    reasoning: dict[str, Any] = Field(default_factory=dict)
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(from_attributes=True)

    @field_validator('material_id')
    @classmethod
    def validate_material_id(cls, v: str) -> str:
        """Validate that material_id is not empty."""
        if not v or not v.strip():
            raise ValueError('Material ID cannot be empty')
        return v.strip()

    @field_validator('confidence', 'validation_confidence')
    @classmethod
    def validate_confidence(cls, v: float | None) -> float | None:
        """Validate that confidence is between 0.0 and 1.0 when present."""
        if v is None:
            return None
        if v < 0.0 or v > 1.0:
            raise ValueError('Confidence must be between 0.0 and 1.0')
        return v

    @field_validator('reasoning', 'metadata', mode='before')
    @classmethod
    def decode_json_column(cls, v: Any) -> Any:
        """asyncpg returns JSONB columns as text unless a codec is registered."""
        if v is None:
            return {}
        if isinstance(v, str):
            return json.loads(v)
        return v


class Setting(BaseModel):
    """
    Pydantic model for a key-value setting.

    Maps to the 'settings' database table schema.
    """
    id: int | None = None
    key: str
    value: str | None = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(from_attributes=True)

    @field_validator('key')
    @classmethod
    def validate_key(cls, v: str) -> str:
        """Validate that key is not empty."""
        if not v or not v.strip():
            raise ValueError('Key cannot be empty')
        return v.strip()
