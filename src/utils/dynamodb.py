"""
Centralized DynamoDB table access utilities.

Provides singleton-pattern table accessors with lazy initialization
and test monkeypatch support.
"""

import os
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, Tuple

import boto3
from boto3.dynamodb.types import TypeSerializer

if TYPE_CHECKING:
    from mypy_boto3_dynamodb import DynamoDBServiceResource
    from mypy_boto3_dynamodb.service_resource import Table


# Module-level cache for test overrides
_table_overrides: dict[str, Optional["Table"]] = {}

# Accessor name -> environment variable holding the physical table name
TABLE_ENV_VARS: Dict[str, str] = {
    "users": "USERS_TABLE_NAME",
    "members": "MEMBERS_TABLE_NAME",
    "chapters": "CHAPTERS_TABLE_NAME",
    "sellers": "SELLERS_TABLE_NAME",
    "promoters": "PROMOTERS_TABLE_NAME",
    "stewards": "STEWARDS_TABLE_NAME",
    "products": "PRODUCTS_TABLE_NAME",
    "events": "EVENTS_TABLE_NAME",
    "orders": "ORDERS_TABLE_NAME",
    "steward_listings": "STEWARD_LISTINGS_TABLE_NAME",
    "steward_claims": "STEWARD_CLAIMS_TABLE_NAME",
    "platform_settings": "PLATFORM_SETTINGS_TABLE_NAME",
    "favorites": "FAVORITES_TABLE_NAME",
    "professions": "PROFESSIONS_TABLE_NAME",
    "notifications": "NOTIFICATIONS_TABLE_NAME",
}


def get_required_env(name: str, default: Optional[str] = None) -> str:
    """Get a required environment variable.

    In Lambda/production, the env var must be set. For tests, a default can be
    provided to allow the code to run in mocked environments.

    Raises:
        ValueError: If the env var is not set and no default is provided
    """
    value = os.getenv(name, default)
    if value is None:
        raise ValueError(f"Required environment variable '{name}' is not set")
    return value


def _get_dynamodb() -> "DynamoDBServiceResource":
    """Get DynamoDB resource with optional endpoint override for LocalStack."""
    return boto3.resource("dynamodb", endpoint_url=os.getenv("DYNAMODB_ENDPOINT"))


def _get_dynamodb_client() -> Any:
    """Low-level client for transactions (typed attribute values)."""
    return boto3.client("dynamodb", endpoint_url=os.getenv("DYNAMODB_ENDPOINT"))


class TableAccessor:
    """Centralized access to DynamoDB tables with environment-based naming."""

    _instance: Optional["TableAccessor"] = None

    def __new__(cls) -> "TableAccessor":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def _table(self, key: str) -> "Table":
        if override := _table_overrides.get(key):
            return override
        return _get_dynamodb().Table(get_required_env(TABLE_ENV_VARS[key]))

    @property
    def users(self) -> "Table":
        """Get users table instance (PK: userId = USER#<cognito sub>)."""
        return self._table("users")

    @property
    def members(self) -> "Table":
        """Get fraternity members table instance."""
        return self._table("members")

    @property
    def chapters(self) -> "Table":
        return self._table("chapters")

    @property
    def sellers(self) -> "Table":
        return self._table("sellers")

    @property
    def promoters(self) -> "Table":
        return self._table("promoters")

    @property
    def stewards(self) -> "Table":
        return self._table("stewards")

    @property
    def products(self) -> "Table":
        return self._table("products")

    @property
    def events(self) -> "Table":
        return self._table("events")

    @property
    def orders(self) -> "Table":
        """Get product orders table instance (GSI: stripeSessionId-index)."""
        return self._table("orders")

    @property
    def steward_listings(self) -> "Table":
        return self._table("steward_listings")

    @property
    def steward_claims(self) -> "Table":
        """Get steward claims table instance (GSIs: stripeSessionId-index, listingId-index)."""
        return self._table("steward_claims")

    @property
    def platform_settings(self) -> "Table":
        return self._table("platform_settings")

    @property
    def favorites(self) -> "Table":
        """Get saved products table instance (GSI: userId-index)."""
        return self._table("favorites")

    @property
    def professions(self) -> "Table":
        return self._table("professions")

    @property
    def notifications(self) -> "Table":
        """Get in-app notifications table instance (GSIs: userEmail-index, relatedProductId-index)."""
        return self._table("notifications")


# Singleton instance for import
tables = TableAccessor()


def get_item(table: "Table", key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Fetch a single item by primary key, or None."""
    item: Optional[Dict[str, Any]] = table.get_item(Key=key).get("Item")
    return item


def query_index(
    table: "Table",
    index_name: str,
    attribute: str,
    value: Any,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    """Query a single-attribute GSI, following pagination unless a limit is given."""
    params: Dict[str, Any] = {
        "IndexName": index_name,
        "KeyConditionExpression": "#k = :v",
        "ExpressionAttributeNames": {"#k": attribute},
        "ExpressionAttributeValues": {":v": value},
    }
    if limit:
        params["Limit"] = limit

    items: List[Dict[str, Any]] = []
    while True:
        response = table.query(**params)
        items.extend(response.get("Items", []))
        last_key = response.get("LastEvaluatedKey")
        if not last_key or (limit and len(items) >= limit):
            break
        params["ExclusiveStartKey"] = last_key
    return items[:limit] if limit else items


def query_first(table: "Table", index_name: str, attribute: str, value: Any) -> Optional[Dict[str, Any]]:
    """Return the first item matching a GSI lookup, or None."""
    items = query_index(table, index_name, attribute, value, limit=1)
    return items[0] if items else None


def scan_all(table: "Table", **kwargs: Any) -> List[Dict[str, Any]]:
    """Scan a table to completion, following LastEvaluatedKey."""
    items: List[Dict[str, Any]] = []
    while True:
        response = table.scan(**kwargs)
        items.extend(response.get("Items", []))
        last_key = response.get("LastEvaluatedKey")
        if not last_key:
            break
        kwargs["ExclusiveStartKey"] = last_key
    return items


def build_update(
    key: Dict[str, Any],
    fields: Dict[str, Any],
    remove: Optional[List[str]] = None,
    condition: Optional[str] = None,
    condition_values: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Build UpdateItem parameters that SET (and optionally REMOVE) attributes.

    Attribute names are always aliased so reserved words like ``status`` and
    ``name`` can be written. The result feeds ``update_fields`` or
    ``transact_update``.
    """
    names: Dict[str, str] = {}
    values: Dict[str, Any] = dict(condition_values or {})
    set_parts = []
    for index, (attr, value) in enumerate(fields.items()):
        names[f"#f{index}"] = attr
        values[f":f{index}"] = value
        set_parts.append(f"#f{index} = :f{index}")

    expression = "SET " + ", ".join(set_parts) if set_parts else ""
    if remove:
        remove_parts = []
        for index, attr in enumerate(remove):
            names[f"#r{index}"] = attr
            remove_parts.append(f"#r{index}")
        expression = f"{expression} REMOVE {', '.join(remove_parts)}".strip()

    params: Dict[str, Any] = {
        "Key": key,
        "UpdateExpression": expression,
        "ExpressionAttributeNames": names,
    }
    if values:
        params["ExpressionAttributeValues"] = values
    if condition:
        params["ConditionExpression"] = condition
        # Conditions reference real attribute names through #status etc.
        for token in condition.replace("(", " ").replace(")", " ").replace(",", " ").split():
            if token.startswith("#") and token not in names:
                names[token] = token[1:]
    return params


def update_fields(
    table: "Table",
    key: Dict[str, Any],
    fields: Dict[str, Any],
    remove: Optional[List[str]] = None,
    condition: Optional[str] = None,
    condition_values: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """SET (and optionally REMOVE) attributes on an item and return the new image."""
    params = build_update(key, fields, remove, condition, condition_values)
    attributes: Dict[str, Any] = table.update_item(ReturnValues="ALL_NEW", **params)["Attributes"]
    return attributes


def transact_update(updates: Sequence[Tuple["Table", Dict[str, Any]]]) -> None:
    """
    Apply several ``build_update`` results in one TransactWriteItems call.

    Either every update (and its condition) succeeds or none is written.

    Raises:
        ClientError: TransactionCanceledException when any condition fails
    """
    serializer = TypeSerializer()
    transact_items = []
    for table, params in updates:
        update: Dict[str, Any] = {
            "TableName": table.name,
            "Key": {k: serializer.serialize(v) for k, v in params["Key"].items()},
            "UpdateExpression": params["UpdateExpression"],
            "ExpressionAttributeNames": params["ExpressionAttributeNames"],
        }
        if params.get("ExpressionAttributeValues"):
            update["ExpressionAttributeValues"] = {
                k: serializer.serialize(v) for k, v in params["ExpressionAttributeValues"].items()
            }
        if params.get("ConditionExpression"):
            update["ConditionExpression"] = params["ConditionExpression"]
        transact_items.append({"Update": update})

    _get_dynamodb_client().transact_write_items(TransactItems=transact_items)


def delete_items(table: "Table", keys: List[Dict[str, Any]]) -> int:
    """Delete items by primary key with a batch writer; returns how many were requested."""
    if not keys:
        return 0
    with table.batch_writer() as batch_writer:
        for key in keys:
            batch_writer.delete_item(Key=key)
    return len(keys)


# Test utilities
def override_table(table_name: str, table: Optional["Table"]) -> None:
    """Override a table for testing. Set to None to clear override."""
    _table_overrides[table_name] = table


def clear_all_overrides() -> None:
    """Clear all table overrides (call in test teardown)."""
    _table_overrides.clear()


def reset_singleton() -> None:
    """Reset the singleton instance (for testing isolation)."""
    TableAccessor._instance = None
