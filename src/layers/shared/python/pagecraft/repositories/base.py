"""Base repository class for DynamoDB operations."""

import os
import threading
from typing import Any, Generic, TypeVar

import boto3
import structlog
from botocore.exceptions import ClientError

from pagecraft.models.base import BaseModel
from pagecraft.utils.exceptions import ConflictError

logger = structlog.get_logger()

T = TypeVar("T", bound=BaseModel)


class BaseRepository(Generic[T]):
    """Base repository for DynamoDB single-table design.

    Provides common CRUD operations with optimistic locking support.
    Repositories are shared across render worker threads, so the lazy
    resource creation is serialized.
    """

    _init_lock = threading.Lock()

    def __init__(
        self,
        model_class: type[T],
        table_name: str | None = None,
    ):
        """Initialize repository.

        Args:
            model_class: The Pydantic model class for this repository.
            table_name: DynamoDB table name. Defaults to TABLE_NAME env var.
        """
        self.model_class = model_class
        self.table_name = table_name or os.environ.get("TABLE_NAME", "pagecraft-dev")
        self._dynamodb = None
        self._table = None

    @property
    def dynamodb(self):
        """Get DynamoDB resource (lazy initialization)."""
        if self._dynamodb is None:
            with self._init_lock:
                if self._dynamodb is None:
                    self._dynamodb = boto3.resource("dynamodb")
        return self._dynamodb

    @property
    def table(self):
        """Get DynamoDB table (lazy initialization)."""
        if self._table is None:
            dynamodb = self.dynamodb
            with self._init_lock:
                if self._table is None:
                    self._table = dynamodb.Table(self.table_name)
        return self._table

    def _build_key(self, pk: str, sk: str) -> dict[str, str]:
        """Build key dictionary for DynamoDB operations."""
        return {"PK": pk, "SK": sk}

    def get(self, pk: str, sk: str) -> T | None:
        """Get an item by its primary key.

        Args:
            pk: Partition key value.
            sk: Sort key value.

        Returns:
            Model instance or None if not found.
        """
        try:
            response = self.table.get_item(Key=self._build_key(pk, sk))
            item = response.get("Item")

            if not item:
                return None

            return self.model_class.from_dynamodb(item)

        except ClientError as e:
            logger.error("DynamoDB get_item failed", error=str(e), pk=pk, sk=sk)
            raise

    def put(self, item: T, condition_expression: str | None = None) -> T:
        """Put an item into DynamoDB.

        Args:
            item: Model instance to save.
            condition_expression: Optional condition expression.

        Returns:
            The saved model instance.

        Raises:
            ConflictError: If the condition expression fails.
        """
        try:
            item.update_timestamp()

            db_item = item.to_dynamodb()
            db_item.update(item.get_keys())

            kwargs: dict[str, Any] = {"Item": db_item}
            if condition_expression:
                kwargs["ConditionExpression"] = condition_expression

            self.table.put_item(**kwargs)

            logger.debug(
                "Item saved",
                pk=db_item["PK"],
                sk=db_item["SK"],
                model=self.model_class.__name__,
            )

            return item

        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                raise ConflictError("Item already exists or version mismatch")
            logger.error("DynamoDB put_item failed", error=str(e))
            raise

    def create(self, item: T) -> T:
        """Create a new item (fails if exists).

        Raises:
            ConflictError: If item already exists.
        """
        return self.put(item, condition_expression="attribute_not_exists(PK)")

    def update(self, item: T, check_version: bool = True) -> T:
        """Update an existing item with optimistic locking.

        Args:
            item: Model instance to update.
            check_version: Whether to check version for optimistic locking.

        Returns:
            The updated model instance.

        Raises:
            ConflictError: If version mismatch (concurrent modification).
        """
        old_version = item.version
        item.increment_version()
        item.update_timestamp()

        try:
            db_item = item.to_dynamodb()
            db_item.update(item.get_keys())

            kwargs: dict[str, Any] = {"Item": db_item}
            if check_version:
                kwargs["ConditionExpression"] = "version = :old_version"
                kwargs["ExpressionAttributeValues"] = {":old_version": old_version}

            self.table.put_item(**kwargs)

            logger.debug(
                "Item updated",
                pk=db_item["PK"],
                sk=db_item["SK"],
                version=item.version,
            )

            return item

        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                item.version = old_version
                raise ConflictError("Item was modified by another process")
            logger.error("DynamoDB update failed", error=str(e))
            raise

    def delete(self, pk: str, sk: str) -> bool:
        """Delete an item.

        Returns:
            True if deleted, False if not found.
        """
        try:
            self.table.delete_item(
                Key=self._build_key(pk, sk),
                ConditionExpression="attribute_exists(PK)",
            )
            logger.debug("Item deleted", pk=pk, sk=sk)
            return True

        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                return False
            logger.error("DynamoDB delete_item failed", error=str(e))
            raise

    def query(
        self,
        pk: str,
        sk_begins_with: str | None = None,
        limit: int | None = None,
        scan_forward: bool = True,
        last_key: dict | None = None,
    ) -> tuple[list[T], dict | None]:
        """Query items by partition key.

        Args:
            pk: Partition key value.
            sk_begins_with: Sort key prefix for begins_with condition.
            limit: Maximum items to return.
            scan_forward: Sort direction (True = ascending).
            last_key: Last evaluated key for pagination.

        Returns:
            Tuple of (items, last_evaluated_key).
        """
        try:
            if sk_begins_with:
                key_condition = "PK = :pk AND begins_with(SK, :sk_prefix)"
                expr_values = {":pk": pk, ":sk_prefix": sk_begins_with}
            else:
                key_condition = "PK = :pk"
                expr_values = {":pk": pk}

            kwargs: dict[str, Any] = {
                "KeyConditionExpression": key_condition,
                "ExpressionAttributeValues": expr_values,
                "ScanIndexForward": scan_forward,
            }
            if limit:
                kwargs["Limit"] = limit
            if last_key:
                kwargs["ExclusiveStartKey"] = last_key

            response = self.table.query(**kwargs)

            items = [self.model_class.from_dynamodb(item) for item in response.get("Items", [])]
            return items, response.get("LastEvaluatedKey")

        except ClientError as e:
            logger.error("DynamoDB query failed", error=str(e), pk=pk)
            raise

    def query_all(self, pk: str, sk_begins_with: str | None = None) -> list[T]:
        """Query every page of items under a partition key."""
        items: list[T] = []
        last_key = None
        while True:
            page, last_key = self.query(pk, sk_begins_with=sk_begins_with, last_key=last_key)
            items.extend(page)
            if not last_key:
                return items
