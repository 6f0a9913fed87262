#!/usr/bin/env python3
"""Create DynamoDB tables for local development.

This script creates the four DynamoDB tables Tripbook needs (users, trips, payments and
rate limits) with their secondary indexes, configured against DynamoDB Local.

Usage:
    python scripts/create_local_tables.py
"""

import sys
from pathlib import Path

import boto3
from botocore.exceptions import ClientError

# Add src to path for config import
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from core.config import get_config


def _index(attribute):
    return {
        "IndexName": f"{attribute}-index",
        "KeySchema": [{"AttributeName": attribute, "KeyType": "HASH"}],
        "Projection": {"ProjectionType": "ALL"},
    }


def create_document_table(dynamodb, table_name, indexed_attributes):
    """Create a document table keyed on ``id`` with one GSI per indexed attribute."""
    params = {
        "TableName": table_name,
        "KeySchema": [{"AttributeName": "id", "KeyType": "HASH"}],
        "AttributeDefinitions": [{"AttributeName": "id", "AttributeType": "S"}]
        + [{"AttributeName": a, "AttributeType": "S"} for a in indexed_attributes],
        "BillingMode": "PAY_PER_REQUEST",
    }
    if indexed_attributes:
        params["GlobalSecondaryIndexes"] = [_index(a) for a in indexed_attributes]

    try:
        dynamodb.create_table(**params)
        print(f"✓ Created {table_name} table ({', '.join(f'{a}-index' for a in indexed_attributes)})")
    except ClientError as e:
        if e.response["Error"]["Code"] == "ResourceInUseException":
            print(f"✓ {table_name} table already exists")
        else:
            raise


def create_rate_limit_table(dynamodb, table_name):
    """Create the rate limit table with TTL on ``ttl``."""
    try:
        dynamodb.create_table(
            TableName=table_name,
            KeySchema=[{"AttributeName": "identity", "KeyType": "HASH"}],
            AttributeDefinitions=[{"AttributeName": "identity", "AttributeType": "S"}],
            BillingMode="PAY_PER_REQUEST",
        )
        dynamodb.update_time_to_live(
            TableName=table_name,
            TimeToLiveSpecification={"Enabled": True, "AttributeName": "ttl"},
        )
        print(f"✓ Created {table_name} table with TTL")
    except ClientError as e:
        if e.response["Error"]["Code"] == "ResourceInUseException":
            print(f"✓ {table_name} table already exists")
        else:
            raise


def main():
    """Create all DynamoDB tables."""
    config = get_config()

    endpoint_url = config.dynamodb_endpoint or "http://localhost:8000"

    print(f"Creating DynamoDB tables at {endpoint_url}...")
    print()

    # For DynamoDB Local, use dummy credentials
    dynamodb = boto3.client(
        "dynamodb",
        endpoint_url=endpoint_url,
        region_name=config.aws_region,
        aws_access_key_id="dummy",
        aws_secret_access_key="dummy",
    )

    create_document_table(dynamodb, config.users_table, ["email", "phone"])
    create_document_table(dynamodb, config.trips_table, ["user"])
    create_document_table(dynamodb, config.payments_table, ["user", "trip"])
    create_rate_limit_table(dynamodb, config.rate_limit_table)

    print()
    print("✅ All DynamoDB tables ready")


if __name__ == "__main__":
    main()
