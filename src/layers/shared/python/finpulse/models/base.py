"""Base Pydantic models with DynamoDB serialization."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, ClassVar, Self

from pydantic import BaseModel as PydanticBaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from ulid import ULID


def generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ULID())


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def round2(value: float) -> float:
    """Round a currency or percentage value to 2 decimal places."""
    return round(float(value), 2)


class TimestampMixin(PydanticBaseModel):
    """Mixin for created_at and updated_at timestamps."""

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class BaseModel(PydanticBaseModel):
    """Base model with DynamoDB serialization.

    Attributes are stored camelCased (userId, budgetId, ...) to match the
    table items written by the API functions.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        validate_assignment=True,
    )

    # Attribute names (camelCase) making up the table key
    _key_attributes: ClassVar[tuple[str, ...]] = ()

    def to_dynamodb(self) -> dict[str, Any]:
        """Serialize model to DynamoDB item format.

        Converts datetime objects to ISO strings and floats to Decimal.
        """
        data = self.model_dump(mode="json", by_alias=True)
        return self._serialize_value(data)

    @classmethod
    def _serialize_value(cls, value: Any) -> Any:
        """Recursively serialize values for DynamoDB.

        Converts floats to Decimal (DynamoDB requirement) and datetimes to ISO strings.
        """
        if isinstance(value, dict):
            return {k: cls._serialize_value(v) for k, v in value.items() if v is not None}
        if isinstance(value, list):
            return [cls._serialize_value(item) for item in value]
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, float):
            # DynamoDB requires Decimal instead of float
            return Decimal(str(value))
        return value

    @classmethod
    def from_dynamodb(cls, item: dict[str, Any]) -> Self:
        """Deserialize DynamoDB item to model instance."""
        data = cls._deserialize_value(item)
        return cls.model_validate(data)

    @classmethod
    def _deserialize_value(cls, value: Any) -> Any:
        """Recursively deserialize values from DynamoDB.

        Converts Decimals back to int or float. ISO timestamps are left to
        field validation.
        """
        if isinstance(value, dict):
            return {k: cls._deserialize_value(v) for k, v in value.items()}
        if isinstance(value, list):
            return [cls._deserialize_value(item) for item in value]
        if isinstance(value, Decimal):
            if value % 1 == 0:
                return int(value)
            return float(value)
        return value

    def get_key(self) -> dict[str, Any]:
        """Get the table key for this item."""
        if not self._key_attributes:
            raise NotImplementedError("Subclasses must define _key_attributes")
        item = self.model_dump(mode="json", by_alias=True)
        return {name: item[name] for name in self._key_attributes}
