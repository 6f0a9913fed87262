"""DynamoDB document store. Conditional writes carry versioning and guard items carry uniqueness."""

import json
import logging
from decimal import Decimal
from typing import Any

from boto3.dynamodb.types import TypeDeserializer, TypeSerializer
from botocore.exceptions import ClientError

from core.db.store import DocumentStore, DuplicateValueError, Item, changed_unique
from core.errors import ConcurrentModificationError, ConflictError

logger = logging.getLogger(__name__)

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()

GUARD_ATTRIBUTE = "uniqueFor"


def to_dynamo(item: Item) -> dict[str, Any]:
    # DynamoDB numbers must be Decimal, never float.
    plain = json.loads(json.dumps(item), parse_float=Decimal)
    return {k: _serializer.serialize(v) for k, v in plain.items()}


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, set)):
        return [_plain(v) for v in value]
    return value


def from_dynamo(item: dict[str, Any]) -> Item:
    return {k: _plain(_deserializer.deserialize(v)) for k, v in item.items()}


def guard_key(field: str, value: str) -> str:
    return f"unique#{field}#{value}"


def _error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "")


class DynamoDocumentStore(DocumentStore):
    def __init__(self, dynamo_client: Any, tables: dict[str, str]) -> None:
        self._client = dynamo_client
        self._tables = tables

    def _table(self, collection: str) -> str:
        return self._tables[collection]

    def get(self, collection: str, item_id: str) -> Item | None:
        response = self._client.get_item(
            TableName=self._table(collection),
            Key={"id": {"S": item_id}},
            ConsistentRead=True,
        )
        item = response.get("Item")
        return from_dynamo(item) if item else None

    def insert(self, collection: str, item: Item, unique: dict[str, str] | None = None) -> None:
        table = self._table(collection)
        if not unique:
            try:
                self._client.put_item(
                    TableName=table,
                    Item=to_dynamo(item),
                    ConditionExpression="attribute_not_exists(id)",
                )
            except ClientError as e:
                if _error_code(e) == "ConditionalCheckFailedException":
                    raise ConflictError(f"Document {item['id']} already exists") from e
                raise
            return

        fields = list(unique)
        actions: list[dict[str, Any]] = [
            {"Put": {"TableName": table, "Item": to_dynamo(item), "ConditionExpression": "attribute_not_exists(id)"}}
        ]
        actions += [self._claim_action(table, field, unique[field], item["id"]) for field in fields]
        self._transact(actions, fields, on_primary=ConflictError(f"Document {item['id']} already exists"))

    def update(
        self,
        collection: str,
        item: Item,
        expected_version: int,
        unique: dict[str, str] | None = None,
        previous_unique: dict[str, str] | None = None,
    ) -> None:
        table = self._table(collection)
        condition = {
            "ConditionExpression": "version = :expected",
            "ExpressionAttributeValues": {":expected": {"N": str(expected_version)}},
        }
        conflict = ConcurrentModificationError(f"Document {item['id']} was modified concurrently")
        added, released = changed_unique(unique, previous_unique)

        if not added and not released:
            try:
                self._client.put_item(TableName=table, Item=to_dynamo(item), **condition)
            except ClientError as e:
                if _error_code(e) == "ConditionalCheckFailedException":
                    raise conflict from e
                raise
            return

        fields = list(added)
        actions: list[dict[str, Any]] = [{"Put": {"TableName": table, "Item": to_dynamo(item), **condition}}]
        actions += [self._claim_action(table, field, added[field], item["id"]) for field in fields]
        actions += [
            {"Delete": {"TableName": table, "Key": {"id": {"S": guard_key(field, value)}}}}
            for field, value in released.items()
        ]
        self._transact(actions, fields, on_primary=conflict)

    def delete(self, collection: str, item_id: str, unique: dict[str, str] | None = None) -> None:
        table = self._table(collection)
        if not unique:
            self._client.delete_item(TableName=table, Key={"id": {"S": item_id}})
            return
        keys = [item_id] + [guard_key(field, value) for field, value in unique.items()]
        self._client.transact_write_items(
            TransactItems=[{"Delete": {"TableName": table, "Key": {"id": {"S": key}}}} for key in keys]
        )

    def query(self, collection: str, attribute: str, value: str) -> list[Item]:
        items: list[Item] = []
        last_key = None

        while True:
            query_kwargs: dict[str, Any] = {
                "TableName": self._table(collection),
                "IndexName": f"{attribute}-index",
                "KeyConditionExpression": "#attr = :value",
                "ExpressionAttributeNames": {"#attr": attribute},
                "ExpressionAttributeValues": {":value": {"S": value}},
            }
            if last_key:
                query_kwargs["ExclusiveStartKey"] = last_key

            response = self._client.query(**query_kwargs)
            items.extend(from_dynamo(i) for i in response.get("Items", []))

            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                break

        return items

    def scan(self, collection: str) -> list[Item]:
        items: list[Item] = []
        last_key = None

        while True:
            scan_kwargs: dict[str, Any] = {
                "TableName": self._table(collection),
                "FilterExpression": f"attribute_not_exists({GUARD_ATTRIBUTE})",
            }
            if last_key:
                scan_kwargs["ExclusiveStartKey"] = last_key

            response = self._client.scan(**scan_kwargs)
            items.extend(from_dynamo(i) for i in response.get("Items", []))

            last_key = response.get("LastEvaluatedKey")
            if not last_key:
                break

        return items

    @staticmethod
    def _claim_action(table: str, field: str, value: str, item_id: str) -> dict[str, Any]:
        return {
            "Put": {
                "TableName": table,
                "Item": {"id": {"S": guard_key(field, value)}, GUARD_ATTRIBUTE: {"S": item_id}},
                "ConditionExpression": "attribute_not_exists(id)",
            }
        }

    def _transact(self, actions: list[dict[str, Any]], fields: list[str], on_primary: Exception) -> None:
        """Run a write transaction; action 0 is the document, actions 1..n claim ``fields`` in order."""
        try:
            self._client.transact_write_items(TransactItems=actions)
        except ClientError as e:
            if _error_code(e) != "TransactionCanceledException":
                raise
            reasons = e.response.get("CancellationReasons", [])
            for index, reason in enumerate(reasons):
                if reason.get("Code") != "ConditionalCheckFailed":
                    continue
                if index == 0:
                    raise on_primary from e
                if index <= len(fields):
                    raise DuplicateValueError(fields[index - 1]) from e
            logger.error("Transaction cancelled: %s", reasons)
            raise
