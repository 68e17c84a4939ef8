"""Base repository class for DynamoDB operations."""

from typing import Any, Generic, TypeVar

import boto3
import structlog
from botocore.exceptions import ClientError
from pydantic import ValidationError as PydanticValidationError

from finpulse.models.base import BaseModel
from finpulse.utils.exceptions import ConflictError, ValidationError

logger = structlog.get_logger()

T = TypeVar("T", bound=BaseModel)


class BaseRepository(Generic[T]):
    """Base repository for one DynamoDB table.

    This is the durable record store used by the workers: keyed reads,
    conditional puts/updates/deletes and paginated queries. Conditional
    check failures surface as ConflictError, which classifies as a
    non-retryable validation failure.
    """

    def __init__(
        self,
        model_class: type[T],
        table_name: str,
        dynamodb: Any = None,
    ):
        """Initialize repository.

        Args:
            model_class: The Pydantic model class for this repository.
            table_name: DynamoDB table name.
            dynamodb: Optional boto3 DynamoDB resource.
        """
        self.model_class = model_class
        self.table_name = table_name
        self._dynamodb = dynamodb
        self._table = None

    @property
    def dynamodb(self):
        """Get DynamoDB resource (lazy initialization)."""
        if self._dynamodb is None:
            self._dynamodb = boto3.resource("dynamodb")
        return self._dynamodb

    @property
    def table(self):
        """Get DynamoDB table (lazy initialization)."""
        if self._table is None:
            self._table = self.dynamodb.Table(self.table_name)
        return self._table

    def get(self, key: dict[str, Any]) -> T | None:
        """Get an item by its primary key.

        Args:
            key: Key attributes.

        Returns:
            Model instance or None if not found.
        """
        try:
            response = self.table.get_item(Key=key)
        except ClientError as e:
            logger.error("DynamoDB get_item failed", error=str(e), table=self.table_name, key=key)
            raise

        item = response.get("Item")
        if not item:
            return None

        return self._to_model(item)

    def _to_model(self, item: dict[str, Any]) -> T:
        """Parse a stored item.

        Raises:
            ValidationError: If the stored item does not match the model.
        """
        try:
            return self.model_class.from_dynamodb(item)
        except PydanticValidationError as e:
            logger.warning(
                "Stored item failed validation",
                table=self.table_name,
                model=self.model_class.__name__,
                error=str(e),
            )
            raise ValidationError.from_pydantic(e) from e

    def put(
        self,
        item: T,
        condition_expression: Any = None,
    ) -> T:
        """Put an item into DynamoDB.

        Args:
            item: Model instance to save.
            condition_expression: Optional condition (string or boto3 condition).

        Returns:
            The saved model instance.

        Raises:
            ConflictError: If the condition fails.
        """
        kwargs: dict[str, Any] = {"Item": item.to_dynamodb()}
        if condition_expression is not None:
            kwargs["ConditionExpression"] = condition_expression

        try:
            self.table.put_item(**kwargs)
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise ConflictError("Item already exists or condition failed") from e
            logger.error("DynamoDB put_item failed", error=str(e), table=self.table_name)
            raise

        logger.debug(
            "Item saved",
            table=self.table_name,
            key=item.get_key(),
            model=self.model_class.__name__,
        )

        return item

    def create(self, item: T) -> T:
        """Create a new item (fails if exists).

        Raises:
            ConflictError: If item already exists.
        """
        first_key = next(iter(item.get_key()))
        return self.put(item, condition_expression=f"attribute_not_exists({first_key})")

    def update(
        self,
        key: dict[str, Any],
        mutation: dict[str, Any],
        must_exist: bool = True,
    ) -> dict[str, Any]:
        """Set attributes on an existing item.

        Args:
            key: Key attributes.
            mutation: camelCase attribute names and their new values.
            must_exist: Fail instead of creating the item when it is missing.

        Returns:
            The updated attributes.

        Raises:
            ConflictError: If must_exist and the item is missing.
        """
        names = {f"#f{i}": name for i, name in enumerate(mutation)}
        values = {
            f":v{i}": BaseModel._serialize_value(value)
            for i, value in enumerate(mutation.values())
        }
        assignments = ", ".join(f"#f{i} = :v{i}" for i in range(len(mutation)))

        kwargs: dict[str, Any] = {
            "Key": key,
            "UpdateExpression": f"SET {assignments}",
            "ExpressionAttributeNames": names,
            "ExpressionAttributeValues": values,
            "ReturnValues": "UPDATED_NEW",
        }
        if must_exist:
            kwargs["ExpressionAttributeNames"]["#k0"] = next(iter(key))
            kwargs["ConditionExpression"] = "attribute_exists(#k0)"

        try:
            response = self.table.update_item(**kwargs)
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise ConflictError("Item does not exist", conflict_type="missing") from e
            logger.error("DynamoDB update_item failed", error=str(e), table=self.table_name, key=key)
            raise

        logger.debug("Item updated", table=self.table_name, key=key, fields=list(mutation))
        return BaseModel._deserialize_value(response.get("Attributes", {}))

    def delete(self, key: dict[str, Any], must_exist: bool = True) -> bool:
        """Delete an item.

        Args:
            key: Key attributes.
            must_exist: Report a missing item instead of succeeding silently.

        Returns:
            True if deleted, False if not found.
        """
        kwargs: dict[str, Any] = {"Key": key}
        if must_exist:
            kwargs["ConditionExpression"] = "attribute_exists(#k0)"
            kwargs["ExpressionAttributeNames"] = {"#k0": next(iter(key))}

        try:
            self.table.delete_item(**kwargs)
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                return False
            logger.error("DynamoDB delete_item failed", error=str(e), table=self.table_name)
            raise

        logger.debug("Item deleted", table=self.table_name, key=key)
        return True

    def query(
        self,
        key_condition: Any,
        filter_expression: Any = None,
        index_name: str | None = None,
        scan_forward: bool = True,
        skip_invalid: bool = False,
    ) -> list[T]:
        """Query all items matching a key condition, following pagination.

        Args:
            key_condition: boto3 Key condition.
            filter_expression: Optional boto3 Attr condition.
            index_name: Optional GSI name.
            scan_forward: Sort direction (True = ascending).
            skip_invalid: Drop items that fail model validation instead of raising.

        Returns:
            List of model instances.

        Raises:
            ValidationError: If an item fails model validation and skip_invalid is False.
        """
        kwargs: dict[str, Any] = {
            "KeyConditionExpression": key_condition,
            "ScanIndexForward": scan_forward,
        }
        if index_name:
            kwargs["IndexName"] = index_name
        if filter_expression is not None:
            kwargs["FilterExpression"] = filter_expression

        items: list[T] = []
        try:
            while True:
                response = self.table.query(**kwargs)
                for item in response.get("Items", []):
                    try:
                        items.append(self._to_model(item))
                    except ValidationError:
                        if not skip_invalid:
                            raise

                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                kwargs["ExclusiveStartKey"] = last_key

        except ClientError as e:
            logger.error(
                "DynamoDB query failed",
                error=str(e),
                table=self.table_name,
                index_name=index_name,
            )
            raise

        return items
