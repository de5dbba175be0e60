"""DynamoDB-backed document store."""
import logging
import threading
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from storage.document_store import (
    Document,
    DocumentNotFoundError,
    DocumentStore,
)

logger = logging.getLogger(__name__)

PARTITION_KEY = 'collection'
SORT_KEY = 'doc_id'


class DynamoDBDocumentStore(DocumentStore):
    """
    DocumentStore on a single DynamoDB table.

    Every document is one item keyed by (collection, doc_id), so a
    collection is a partition and listing or querying it is a Query on
    the partition key. Nested collections use slash paths such as
    "users/<uid>/notifications".
    """

    TRANSACTION_LIMIT = 100  # DynamoDB TransactWriteItems limit

    def __init__(
        self,
        table_name: str,
        region_name: Optional[str] = None,
        endpoint_url: Optional[str] = None
    ):
        """
        Initialize the store.

        Args:
            table_name: Name of the DynamoDB table
            region_name: AWS region (default: from the environment)
            endpoint_url: Alternative endpoint, e.g. DynamoDB Local
        """
        self.table_name = table_name
        self.region_name = region_name
        self.endpoint_url = endpoint_url
        self._local = threading.local()
        self._connected = False

    def connect(self) -> None:
        self._connected = True
        logger.info(f"Connected DynamoDBDocumentStore to table: {self.table_name}")

    def dispose(self) -> None:
        self._connected = False
        self._local = threading.local()
        logger.info(f"Disposed DynamoDBDocumentStore for table: {self.table_name}")

    @property
    def table(self):
        """
        Table resource for the calling thread.

        boto3 resources are not thread-safe, so each thread gets its own.
        """
        if not self._connected:
            raise RuntimeError("DynamoDBDocumentStore is not connected")

        table = getattr(self._local, 'table', None)
        if table is None:
            session = boto3.session.Session()
            dynamodb = session.resource(
                'dynamodb',
                region_name=self.region_name,
                endpoint_url=self.endpoint_url
            )
            table = dynamodb.Table(self.table_name)
            self._local.table = table
        return table

    def create_table(self) -> None:
        """Create the backing table with on-demand billing and wait for it."""
        client = self.table.meta.client
        client.create_table(
            TableName=self.table_name,
            KeySchema=[
                {'AttributeName': PARTITION_KEY, 'KeyType': 'HASH'},
                {'AttributeName': SORT_KEY, 'KeyType': 'RANGE'}
            ],
            AttributeDefinitions=[
                {'AttributeName': PARTITION_KEY, 'AttributeType': 'S'},
                {'AttributeName': SORT_KEY, 'AttributeType': 'S'}
            ],
            BillingMode='PAY_PER_REQUEST'
        )
        client.get_waiter('table_exists').wait(TableName=self.table_name)
        logger.info(f"Created DynamoDB table: {self.table_name}")

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        try:
            response = self.table.get_item(
                Key={PARTITION_KEY: collection, SORT_KEY: doc_id}
            )
        except ClientError as e:
            logger.error(f"Error reading {collection}/{doc_id}: {e}")
            raise

        item = response.get('Item')
        return self._item_to_data(item) if item else None

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        try:
            self.table.put_item(Item=self._data_to_item(collection, doc_id, data))
        except ClientError as e:
            logger.error(f"Error writing {collection}/{doc_id}: {e}")
            raise

    def update(self, collection: str, doc_id: str, changes: Dict[str, Any]) -> None:
        if not changes:
            return

        names = {'#pk': PARTITION_KEY}
        values = {}
        assignments = []
        for index, (field, value) in enumerate(changes.items()):
            names[f'#f{index}'] = field
            values[f':v{index}'] = _to_dynamo(value)
            assignments.append(f'#f{index} = :v{index}')

        self._conditional_update(
            collection,
            doc_id,
            UpdateExpression='SET ' + ', '.join(assignments),
            ExpressionAttributeNames=names,
            ExpressionAttributeValues=values
        )

    def delete(self, collection: str, doc_id: str) -> None:
        try:
            self.table.delete_item(Key={PARTITION_KEY: collection, SORT_KEY: doc_id})
        except ClientError as e:
            logger.error(f"Error deleting {collection}/{doc_id}: {e}")
            raise

    def list(self, collection: str) -> List[Document]:
        return self._query_partition(collection)

    def query(
        self,
        collection: str,
        field: str,
        value: Any,
        op: str = '=='
    ) -> List[Document]:
        self._check_operator(op)
        if op == 'in':
            condition = Attr(field).is_in([_to_dynamo(item) for item in value])
        else:
            condition = Attr(field).eq(_to_dynamo(value))
        return self._query_partition(collection, condition)

    def increment(
        self,
        collection: str,
        doc_id: str,
        field_path: str,
        amount: int = 1
    ) -> None:
        names = {'#pk': PARTITION_KEY}
        placeholders = []
        for index, part in enumerate(field_path.split('.')):
            names[f'#p{index}'] = part
            placeholders.append(f'#p{index}')
        path = '.'.join(placeholders)

        self._conditional_update(
            collection,
            doc_id,
            UpdateExpression=f'SET {path} = if_not_exists({path}, :zero) + :amount',
            ExpressionAttributeNames=names,
            ExpressionAttributeValues={':zero': 0, ':amount': amount}
        )

    def batch_set(self, collection: str, documents: List[Tuple[str, Dict[str, Any]]]) -> None:
        """
        Write documents in TransactWriteItems chunks.

        Each chunk of up to 100 documents is all-or-nothing; a failing
        chunk raises and stops the remaining chunks.
        """
        if not documents:
            return

        client = self.table.meta.client
        for i in range(0, len(documents), self.TRANSACTION_LIMIT):
            chunk = documents[i:i + self.TRANSACTION_LIMIT]
            transact_items = [
                {
                    'Put': {
                        'TableName': self.table_name,
                        'Item': self._data_to_item(collection, doc_id, data)
                    }
                }
                for doc_id, data in chunk
            ]

            try:
                client.transact_write_items(TransactItems=transact_items)
            except ClientError as e:
                logger.error(
                    f"Error writing batch {i // self.TRANSACTION_LIMIT + 1} "
                    f"to {collection}: {e}"
                )
                raise

        logger.info(f"Wrote {len(documents)} documents to {collection}")

    def _conditional_update(self, collection: str, doc_id: str, **kwargs) -> None:
        try:
            self.table.update_item(
                Key={PARTITION_KEY: collection, SORT_KEY: doc_id},
                ConditionExpression='attribute_exists(#pk)',
                **kwargs
            )
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') == 'ConditionalCheckFailedException':
                raise DocumentNotFoundError(collection, doc_id) from e
            logger.error(f"Error updating {collection}/{doc_id}: {e}")
            raise

    def _query_partition(self, collection: str, filter_condition=None) -> List[Document]:
        """
        Read every item of a collection, following pagination.

        Args:
            collection: Collection path (partition key value)
            filter_condition: Optional boto3 condition applied server-side

        Returns:
            List of Document objects
        """
        kwargs = {'KeyConditionExpression': Key(PARTITION_KEY).eq(collection)}
        if filter_condition is not None:
            kwargs['FilterExpression'] = filter_condition

        try:
            response = self.table.query(**kwargs)
            items = response.get('Items', [])

            # Handle pagination
            while 'LastEvaluatedKey' in response:
                response = self.table.query(
                    ExclusiveStartKey=response['LastEvaluatedKey'],
                    **kwargs
                )
                items.extend(response.get('Items', []))

        except ClientError as e:
            logger.error(f"Error querying collection {collection}: {e}")
            raise

        return [Document(item[SORT_KEY], self._item_to_data(item)) for item in items]

    @staticmethod
    def _data_to_item(collection: str, doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        item = _to_dynamo(data)
        item[PARTITION_KEY] = collection
        item[SORT_KEY] = doc_id
        return item

    @staticmethod
    def _item_to_data(item: Dict[str, Any]) -> Dict[str, Any]:
        data = {
            key: value for key, value in item.items()
            if key not in (PARTITION_KEY, SORT_KEY)
        }
        return _from_dynamo(data)


def _to_dynamo(value: Any) -> Any:
    """Convert floats to Decimal recursively; DynamoDB rejects float."""
    if isinstance(value, bool):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {key: _to_dynamo(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_dynamo(item) for item in value]
    return value


def _from_dynamo(value: Any) -> Any:
    """Convert Decimal back to int or float recursively."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {key: _from_dynamo(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_from_dynamo(item) for item in value]
    return value
