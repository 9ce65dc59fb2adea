"""DynamoDB backend implementing IRecordStore.

One table per entity. ``PK``/``SK`` are composed from the table's natural key
so that upserts are single ``update_item`` calls keyed exactly like the
relational unique constraints they replace.
"""

from __future__ import annotations

import uuid
from decimal import Decimal
from functools import reduce
from typing import Any, Iterable, Mapping, Sequence

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import BotoCoreError, ClientError

from enrollproof.core.exceptions import RecordStoreError
from enrollproof.persistence.tables import SURROGATE_ID_TABLES, TABLE_KEYS, key_fields, physical_name

_SORT_PLACEHOLDER = "ROW"


def _decode_decimals(item: dict[str, Any]) -> dict[str, Any]:
    """Convert Decimal values in a DynamoDB item to int/float."""
    out: dict[str, Any] = {}
    for k, v in item.items():
        if isinstance(v, Decimal):
            out[k] = int(v) if v == int(v) else float(v)
        elif isinstance(v, dict):
            out[k] = _decode_decimals(v)
        elif isinstance(v, list):
            out[k] = [
                _decode_decimals(i) if isinstance(i, dict)
                else (int(i) if isinstance(i, Decimal) and i == int(i) else float(i) if isinstance(i, Decimal) else i)
                for i in v
            ]
        else:
            out[k] = v
    return out


def _to_dynamodb(value: Any) -> Any:
    """Floats -> Decimal; DynamoDB rejects native floats."""
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: _to_dynamodb(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_to_dynamodb(i) for i in value]
    return value


def _is_many(value: Any) -> bool:
    return isinstance(value, (list, tuple, set, frozenset))


class DynamoDBRecordStore:
    """Production IRecordStore backed by DynamoDB."""

    def __init__(self, table_suffix: str = "", region: str = "us-east-1",
                 endpoint_url: str | None = None) -> None:
        self._table_suffix = table_suffix
        self._region = region
        self._endpoint_url = endpoint_url
        kwargs: dict = {"region_name": region}
        if endpoint_url:
            kwargs["endpoint_url"] = endpoint_url
        self._ddb = boto3.resource("dynamodb", **kwargs)

    def _table(self, base: str):
        return self._ddb.Table(physical_name(base, self._table_suffix))

    @staticmethod
    def _item_key(table: str, row: Mapping[str, Any]) -> dict[str, str]:
        pk_field, sk_field = TABLE_KEYS[table]
        sk = f"{sk_field.upper()}#{row[sk_field]}" if sk_field else _SORT_PLACEHOLDER
        return {"PK": f"{pk_field.upper()}#{row[pk_field]}", "SK": sk}

    @staticmethod
    def _strip(item: dict[str, Any]) -> dict[str, Any]:
        item = _decode_decimals(item)
        item.pop("PK", None)
        item.pop("SK", None)
        return item

    def _read_all(self, method, **kwargs: Any) -> list[dict[str, Any]]:
        """Follow LastEvaluatedKey until the query/scan is exhausted."""
        items: list[dict[str, Any]] = []
        while True:
            resp = method(**kwargs)
            items.extend(self._strip(i) for i in resp.get("Items", []))
            last = resp.get("LastEvaluatedKey")
            if not last:
                return items
            kwargs["ExclusiveStartKey"] = last

    # ---- IRecordStore methods ----

    def select(self, table: str, where: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        pk_field, sk_field = TABLE_KEYS[table]
        where = dict(where or {})
        tbl = self._table(table)

        key_cond = None
        pk_val = where.get(pk_field)
        if pk_val is not None and not _is_many(pk_val):
            key_cond = Key("PK").eq(f"{pk_field.upper()}#{where.pop(pk_field)}")
            sk_val = where.get(sk_field) if sk_field else None
            if sk_val is not None and not _is_many(sk_val):
                key_cond = key_cond & Key("SK").eq(f"{sk_field.upper()}#{where.pop(sk_field)}")

        # Scalar and NULL filters go to DynamoDB; IN lists may exceed the
        # 100-operand limit, so they are applied after the read.
        conditions = []
        in_filters: dict[str, set[Any]] = {}
        for field, value in where.items():
            if value is None:
                conditions.append(Attr(field).not_exists() | Attr(field).attribute_type("NULL"))
            elif _is_many(value):
                in_filters[field] = set(value)
            else:
                conditions.append(Attr(field).eq(_to_dynamodb(value)))

        kwargs: dict[str, Any] = {}
        if conditions:
            kwargs["FilterExpression"] = reduce(lambda a, b: a & b, conditions)

        try:
            if key_cond is not None:
                items = self._read_all(tbl.query, KeyConditionExpression=key_cond, **kwargs)
            else:
                items = self._read_all(tbl.scan, **kwargs)
        except (ClientError, BotoCoreError) as exc:
            raise RecordStoreError(f"DynamoDB select on {table!r} failed: {exc}") from exc

        if in_filters:
            items = [i for i in items if all(i.get(f) in vals for f, vals in in_filters.items())]
        return items

    def get(self, table: str, where: Mapping[str, Any]) -> dict[str, Any] | None:
        rows = self.select(table, where)
        return rows[0] if rows else None

    def upsert(
        self, table: str, rows: Iterable[Mapping[str, Any]], on_conflict: Sequence[str]
    ) -> list[dict[str, Any]]:
        keys = key_fields(table)
        if set(on_conflict) != set(keys):
            raise ValueError(f"{table} upserts must conflict on {keys}, got {tuple(on_conflict)}")

        surrogate = table in SURROGATE_ID_TABLES
        tbl = self._table(table)
        out: list[dict[str, Any]] = []
        for row in rows:
            row = dict(row)
            if surrogate and "id" in keys and not row.get("id"):
                row["id"] = uuid.uuid4().hex
            # A non-key surrogate id is only ever written on first insert.
            supplied_id = row.pop("id", None) if surrogate and "id" not in keys else None

            names: dict[str, str] = {}
            values: dict[str, Any] = {}
            sets: list[str] = []
            for i, (field, value) in enumerate(row.items()):
                names[f"#f{i}"] = field
                values[f":v{i}"] = _to_dynamodb(value)
                sets.append(f"#f{i} = :v{i}")
            if surrogate and "id" not in keys:
                names["#id"] = "id"
                values[":id"] = supplied_id or uuid.uuid4().hex
                sets.append("#id = if_not_exists(#id, :id)")

            try:
                resp = tbl.update_item(
                    Key=self._item_key(table, row),
                    UpdateExpression="SET " + ", ".join(sets),
                    ExpressionAttributeNames=names,
                    ExpressionAttributeValues=values,
                    ReturnValues="ALL_NEW",
                )
            except KeyError as exc:
                raise RecordStoreError(f"{table} upsert row missing key field {exc}") from exc
            except (ClientError, BotoCoreError) as exc:
                raise RecordStoreError(f"DynamoDB upsert on {table!r} failed: {exc}") from exc
            out.append(self._strip(resp.get("Attributes", {})))
        return out

    def insert(self, table: str, rows: Iterable[Mapping[str, Any]]) -> list[dict[str, Any]]:
        tbl = self._table(table)
        out: list[dict[str, Any]] = []
        for row in rows:
            row = dict(row)
            if table in SURROGATE_ID_TABLES and not row.get("id"):
                row["id"] = uuid.uuid4().hex
            try:
                item = {**self._item_key(table, row), **_to_dynamodb(row)}
                tbl.put_item(Item=item, ConditionExpression="attribute_not_exists(PK)")
            except KeyError as exc:
                raise RecordStoreError(f"{table} insert row missing key field {exc}") from exc
            except ClientError as exc:
                if exc.response.get("Error", {}).get("Code") == "ConditionalCheckFailedException":
                    raise RecordStoreError(f"Duplicate key in {table}: {item['PK']}/{item['SK']}") from exc
                raise RecordStoreError(f"DynamoDB insert on {table!r} failed: {exc}") from exc
            except BotoCoreError as exc:
                raise RecordStoreError(f"DynamoDB insert on {table!r} failed: {exc}") from exc
            out.append(row)
        return out

    def update(self, table: str, where: Mapping[str, Any], values: Mapping[str, Any]) -> int:
        matched = self.select(table, where)
        if not matched or not values:
            return 0
        names = {f"#f{i}": field for i, field in enumerate(values)}
        attr_values = {f":v{i}": _to_dynamodb(v) for i, v in enumerate(values.values())}
        expression = "SET " + ", ".join(f"#f{i} = :v{i}" for i in range(len(values)))
        tbl = self._table(table)
        for row in matched:
            try:
                tbl.update_item(
                    Key=self._item_key(table, row),
                    UpdateExpression=expression,
                    ExpressionAttributeNames=names,
                    ExpressionAttributeValues=attr_values,
                )
            except (ClientError, BotoCoreError) as exc:
                raise RecordStoreError(f"DynamoDB update on {table!r} failed: {exc}") from exc
        return len(matched)
