"""Pytest configuration and fixtures."""

import os

import pytest

# Set environment variables before imports
os.environ["TRANSACTIONS_TABLE"] = "Transactions"
os.environ["TRANSACTIONS_CATEGORY_INDEX"] = "category-index"
os.environ["BUDGETS_TABLE"] = "Budgets"
os.environ["USERS_TABLE"] = "Users"
os.environ["EVENT_BUS_NAME"] = "financial-platform-events"
os.environ["EVENT_SOURCE"] = "financial.platform"
os.environ["SERVICE_NAME"] = "finpulse"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ.pop("DEAD_LETTER_QUEUE_URL", None)
os.environ.pop("NOTIFICATION_FROM_EMAIL", None)


@pytest.fixture
def aws_credentials():
    """Mock AWS credentials for moto."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_SECURITY_TOKEN"] = "testing"
    os.environ["AWS_SESSION_TOKEN"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"


@pytest.fixture
def aws(aws_credentials):
    """Run the test inside a moto mock of every AWS service."""
    from moto import mock_aws

    with mock_aws():
        yield


@pytest.fixture
def dynamodb(aws):
    """Create the mocked Transactions, Budgets and Users tables."""
    import boto3

    resource = boto3.resource("dynamodb", region_name="us-east-1")

    resource.create_table(
        TableName="Transactions",
        KeySchema=[
            {"AttributeName": "userId", "KeyType": "HASH"},
            {"AttributeName": "timestamp", "KeyType": "RANGE"},
        ],
        AttributeDefinitions=[
            {"AttributeName": "userId", "AttributeType": "S"},
            {"AttributeName": "timestamp", "AttributeType": "S"},
            {"AttributeName": "category", "AttributeType": "S"},
        ],
        GlobalSecondaryIndexes=[
            {
                "IndexName": "category-index",
                "KeySchema": [
                    {"AttributeName": "userId", "KeyType": "HASH"},
                    {"AttributeName": "category", "KeyType": "RANGE"},
                ],
                "Projection": {"ProjectionType": "ALL"},
            },
        ],
        BillingMode="PAY_PER_REQUEST",
    )

    resource.create_table(
        TableName="Budgets",
        KeySchema=[
            {"AttributeName": "userId", "KeyType": "HASH"},
            {"AttributeName": "budgetId", "KeyType": "RANGE"},
        ],
        AttributeDefinitions=[
            {"AttributeName": "userId", "AttributeType": "S"},
            {"AttributeName": "budgetId", "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )

    resource.create_table(
        TableName="Users",
        KeySchema=[{"AttributeName": "userId", "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": "userId", "AttributeType": "S"}],
        BillingMode="PAY_PER_REQUEST",
    )

    yield resource


@pytest.fixture
def event_bus_client(aws):
    """Create the mocked platform event bus."""
    import boto3

    client = boto3.client("events", region_name="us-east-1")
    client.create_event_bus(Name="financial-platform-events")

    yield client


@pytest.fixture
def transaction_repo(dynamodb):
    """Transaction repository on the mocked table."""
    from finpulse.repositories.transaction import TransactionRepository

    return TransactionRepository(dynamodb=dynamodb)


@pytest.fixture
def budget_repo(dynamodb):
    """Budget repository on the mocked table."""
    from finpulse.repositories.budget import BudgetRepository

    return BudgetRepository(dynamodb=dynamodb)


@pytest.fixture
def user_repo(dynamodb):
    """User repository on the mocked table."""
    from finpulse.repositories.user import UserRepository

    return UserRepository(dynamodb=dynamodb)


@pytest.fixture
def add_expense(transaction_repo):
    """Store a transaction for a user."""
    from finpulse.models.transaction import Transaction

    counter = {"n": 0}

    def _add(user_id: str, category: str, amount: float, type: str = "expense"):
        counter["n"] += 1
        transaction = Transaction(
            user_id=user_id,
            timestamp=f"2024-06-01T12:00:{counter['n']:02d}+00:00",
            amount=amount,
            category=category,
            type=type,
            description=f"Test {type} {counter['n']}",
        )
        transaction_repo.put(transaction)
        return transaction

    return _add


@pytest.fixture
def sample_budget():
    """Create a sample food budget."""
    from finpulse.models.budget import Budget

    return Budget(
        user_id="user-123",
        budget_id="budget-food",
        name="Groceries",
        amount=200,
        category="Food",
        period="monthly",
    )


@pytest.fixture
def transaction_event():
    """Create an EventBridge Transaction Created event."""

    def _create_event(
        user_id: str = "user-123",
        category: str = "food",
        amount: float = 60.0,
        type: str = "expense",
        event_id: str = "evt-1",
    ):
        return {
            "id": event_id,
            "source": "financial.platform",
            "detail-type": "Transaction Created",
            "detail": {
                "userId": user_id,
                "transactionId": f"txn-{event_id}",
                "amount": amount,
                "category": category,
                "type": type,
                "description": "Test transaction",
                "timestamp": "2024-06-01T12:00:00+00:00",
            },
        }

    return _create_event


class LambdaContext:
    """Mock Lambda context."""

    def __init__(self):
        self.function_name = "test-function"
        self.memory_limit_in_mb = 128
        self.invoked_function_arn = "arn:aws:lambda:us-east-1:123456789:function:test"
        self.aws_request_id = "test-request-id"

    def get_remaining_time_in_millis(self):
        return 30000


@pytest.fixture
def lambda_context():
    """Create a mock Lambda context."""
    return LambdaContext()
