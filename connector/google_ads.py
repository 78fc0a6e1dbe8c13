"""
Google Ads gateway for conversion adjustments and offline user data jobs.

Wraps the google-ads SDK behind a small async interface used by the upload
variants. SDK calls run in worker threads and are retried on quota and
transient failures.
"""

import asyncio
import json
import logging
import re
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from google.ads.googleads.client import GoogleAdsClient
from google.protobuf import json_format
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential_jitter,
    retry_if_exception,
)

from connector.cache import ResourceCache
from connector.errors import (
    ConfigurationError,
    UploadError,
    map_google_ads_exception,
)
from connector.models import BatchResult

logger = logging.getLogger(__name__)


# Identifier fields accepted on an offline user data record
USER_IDENTIFIER_FIELDS: Tuple[str, ...] = (
    "hashed_email",
    "hashed_phone_number",
    "mobile_id",
    "third_party_user_id",
    "address_info",
)

# Non-identifier UserData fields passed through as-is
USER_DATA_PASSTHROUGH_FIELDS: Tuple[str, ...] = (
    "transaction_attribute",
    "user_attribute",
    "consent",
)

DEFAULT_MEMBERSHIP_LIFE_SPAN = 10000  # days; 10000 means no expiration

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def normalize_customer_id(customer_id: Optional[Any]) -> str:
    """Strip dashes from a customer id ("123-456-7890" -> "1234567890")."""
    return str(customer_id or "").replace("-", "").strip()


def _snake_case(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def _pop_any(data: Dict[str, Any], *keys: str) -> Any:
    """Pop the first present key among aliases (snake_case and camelCase)."""
    value = None
    for key in keys:
        if key in data:
            popped = data.pop(key)
            value = popped if value is None else value
    return value


def _gaql_string(value: str) -> str:
    return "'" + value.replace("\\", "\\\\").replace("'", "\\'") + "'"


def parse_json_records(
    records: Sequence[str],
) -> Tuple[List[Tuple[int, Dict[str, Any]]], List[str]]:
    """
    Parse JSON-lines records.

    Returns:
        (position in batch, object) pairs, and one error message per
        unparseable record
    """
    parsed: List[Tuple[int, Dict[str, Any]]] = []
    errors: List[str] = []
    for position, line in enumerate(records):
        try:
            record = json.loads(line)
        except json.JSONDecodeError as e:
            errors.append(f"Record {position} is not valid JSON: {e.msg}")
            continue
        if not isinstance(record, dict):
            errors.append(f"Record {position} is not a JSON object")
            continue
        parsed.append((position, record))
    return parsed, errors


def build_user_data(record: Dict[str, Any]) -> Dict[str, Any]:
    """
    Convert a flat record into a UserData mapping.

    ``{"hashedEmail": "..", "hashedPhoneNumber": ".."}`` becomes one user
    identifier per field. Records that already carry ``user_identifiers``
    are used unchanged.
    """
    fields = {_snake_case(key): value for key, value in record.items()}
    if "user_identifiers" in fields:
        return fields

    user_data: Dict[str, Any] = {
        "user_identifiers": [
            {name: fields[name]} for name in USER_IDENTIFIER_FIELDS if fields.get(name)
        ]
    }
    for name in USER_DATA_PASSTHROUGH_FIELDS:
        if name in fields:
            user_data[name] = fields[name]
    return user_data


def merge_into_message(message: Any, data: Dict[str, Any]) -> None:
    """Parse a JSON-style mapping (camelCase or snake_case keys) into a proto-plus message."""
    json_format.ParseDict(data, type(message).pb(message), ignore_unknown_fields=True)


def _is_retryable(exception: BaseException) -> bool:
    return isinstance(exception, UploadError) and exception.error_detail.retryable


class GoogleAdsGateway:
    """
    Google Ads API operations used by the upload variants.

    One SDK client is kept per login customer id.
    """

    def __init__(
        self,
        credentials: Dict[str, Any],
        cache: Optional[ResourceCache] = None,
        client_factory: Callable[[Dict[str, Any]], Any] = GoogleAdsClient.load_from_dict,
    ):
        """
        Initialize Google Ads gateway.

        Args:
            credentials: Dictionary accepted by GoogleAdsClient.load_from_dict
            cache: Resource-name cache for list/conversion action lookups
            client_factory: Builds an SDK client from credentials
        """
        self.credentials = credentials
        self.cache = cache
        self._client_factory = client_factory
        self._clients: Dict[str, Any] = {}
        logger.info("GoogleAdsGateway initialized")

    def get_client(self, login_customer_id: Optional[Any] = None) -> Any:
        """Get (or build) the SDK client for a login customer id."""
        key = normalize_customer_id(login_customer_id)
        if key not in self._clients:
            config = dict(self.credentials)
            if key:
                config["login_customer_id"] = key
            config.setdefault("use_proto_plus", True)
            self._clients[key] = self._client_factory(config)
        return self._clients[key]

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential_jitter(initial=1, max=10),
        retry=retry_if_exception(_is_retryable),
        reraise=True,
    )
    async def _call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        """Run a blocking SDK call in a thread, mapping failures to typed errors."""
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except Exception as e:
            raise map_google_ads_exception(e) from e

    async def _search(self, client: Any, customer_id: str, query: str) -> List[Any]:
        service = client.get_service("GoogleAdsService")
        return await self._call(lambda: list(service.search(customer_id=customer_id, query=query)))

    @staticmethod
    def _partial_failure_messages(client: Any, response: Any, positions: Sequence[int]) -> List[str]:
        """
        Extract readable messages from a partial-failure response.

        Failure indexes count the operations sent; ``positions`` maps them
        back to record positions in the batch.
        """
        partial_failure = getattr(response, "partial_failure_error", None)
        if not partial_failure or not getattr(partial_failure, "code", 0):
            return []

        failure_type = type(client.get_type("GoogleAdsFailure"))
        messages: List[str] = []
        for detail in partial_failure.details:
            failure = failure_type.deserialize(detail.value)
            for error in failure.errors:
                elements = error.location.field_path_elements
                index = elements[0].index if elements else None
                if index is not None and 0 <= index < len(positions):
                    index = positions[index]
                prefix = f"Record {index}: " if index is not None else ""
                messages.append(f"{prefix}{error.message}")
        return messages or [partial_failure.message]

    # Conversion adjustments

    async def upload_conversion_adjustments(
        self,
        target: Dict[str, Any],
        records: Sequence[str],
    ) -> BatchResult:
        """
        Upload one batch of conversion adjustments.

        Each record is a JSON object merged over ``adsConfig`` and parsed into
        a ConversionAdjustment. Partial failure is enabled, so valid records
        are applied even when others fail.

        Args:
            target: Destination parameters (customerId, loginCustomerId, adsConfig)
            records: JSON-lines records of this batch

        Returns:
            Batch result carrying per-record failure messages
        """
        customer_id = normalize_customer_id(target.get("customerId"))
        client = self.get_client(target.get("loginCustomerId"))
        ads_config = target.get("adsConfig") or {}

        parsed, errors = parse_json_records(records)
        adjustments = []
        positions = []
        for position, record in parsed:
            data = {**ads_config, **record}
            action = _pop_any(data, "conversion_action", "conversionAction")
            adjustment = client.get_type("ConversionAdjustment")
            merge_into_message(adjustment, data)
            if action:
                adjustment.conversion_action = await self.resolve_conversion_action(
                    client, customer_id, str(action)
                )
            adjustments.append(adjustment)
            positions.append(position)

        if adjustments:
            request = client.get_type("UploadConversionAdjustmentsRequest")
            request.customer_id = customer_id
            request.conversion_adjustments = adjustments
            request.partial_failure = True

            service = client.get_service("ConversionAdjustmentUploadService")
            response = await self._call(service.upload_conversion_adjustments, request=request)
            errors.extend(self._partial_failure_messages(client, response, positions))

        logger.debug(
            f"Uploaded {len(adjustments)} conversion adjustments for customer {customer_id} "
            f"({len(errors)} errors)"
        )
        return BatchResult.from_errors(errors)

    async def resolve_conversion_action(self, client: Any, customer_id: str, action: str) -> str:
        """
        Resolve a conversion action given by resource name, id or name.

        Returns:
            Conversion action resource name
        """
        if action.startswith("customers/"):
            return action
        if action.isdigit():
            return client.get_service("ConversionActionService").conversion_action_path(
                customer_id, action
            )

        if self.cache:
            cached = await self.cache.get("conversion_action", customer_id, action)
            if cached:
                return cached

        query = (
            "SELECT conversion_action.resource_name FROM conversion_action "
            f"WHERE conversion_action.name = {_gaql_string(action)}"
        )
        rows = await self._search(client, customer_id, query)
        if not rows:
            raise ConfigurationError(
                f"Conversion action '{action}' not found for customer {customer_id}"
            )

        resource_name = rows[0].conversion_action.resource_name
        if self.cache:
            await self.cache.set("conversion_action", customer_id, action, resource_name)
        return resource_name

    # Offline user data jobs

    async def get_or_create_user_list(self, job_config: Dict[str, Any]) -> str:
        """
        Find a Customer Match user list by name, creating it if missing.

        Args:
            job_config: Offline user data job configuration (customer_id,
                list_id or list_name, upload_key_type, app_id, ...)

        Returns:
            User list id
        """
        if job_config.get("list_id"):
            return str(job_config["list_id"])

        list_name = job_config.get("list_name")
        if not list_name:
            raise ConfigurationError("Customer Match upload needs 'list_id' or 'list_name'")

        customer_id = normalize_customer_id(job_config.get("customer_id"))
        client = self.get_client(job_config.get("login_customer_id"))

        if self.cache:
            cached = await self.cache.get("user_list", customer_id, list_name)
            if cached:
                return cached

        query = (
            "SELECT user_list.id FROM user_list "
            f"WHERE user_list.name = {_gaql_string(list_name)} "
            "AND user_list.type = 'CRM_BASED'"
        )
        rows = await self._search(client, customer_id, query)
        if rows:
            list_id = str(rows[0].user_list.id)
            logger.info(f"Found user list '{list_name}' ({list_id}) for customer {customer_id}")
        else:
            list_id = await self._create_user_list(client, customer_id, job_config)
            logger.info(f"Created user list '{list_name}' ({list_id}) for customer {customer_id}")

        if self.cache:
            await self.cache.set("user_list", customer_id, list_name, list_id)
        return list_id

    async def _create_user_list(self, client: Any, customer_id: str, job_config: Dict[str, Any]) -> str:
        operation = client.get_type("UserListOperation")
        user_list = operation.create
        user_list.name = job_config["list_name"]
        user_list.description = job_config.get("list_description", "")
        user_list.membership_life_span = int(
            job_config.get("membership_life_span", DEFAULT_MEMBERSHIP_LIFE_SPAN)
        )
        upload_key_type = job_config.get("upload_key_type", "CONTACT_INFO")
        user_list.crm_based_user_list.upload_key_type = (
            client.enums.CustomerMatchUploadKeyTypeEnum[upload_key_type]
        )
        if job_config.get("app_id"):
            user_list.crm_based_user_list.app_id = job_config["app_id"]

        service = client.get_service("UserListService")
        response = await self._call(
            service.mutate_user_lists, customer_id=customer_id, operations=[operation]
        )
        return response.results[0].resource_name.split("/")[-1]

    async def create_offline_user_data_job(self, job_config: Dict[str, Any]) -> str:
        """
        Create an offline user data job.

        Returns:
            Job resource name
        """
        job_type = job_config.get("type")
        if not job_type:
            raise ConfigurationError("Offline user data job config needs a 'type'")

        customer_id = normalize_customer_id(job_config.get("customer_id"))
        client = self.get_client(job_config.get("login_customer_id"))

        job = client.get_type("OfflineUserDataJob")
        job.type_ = client.enums.OfflineUserDataJobTypeEnum[job_type]
        if job_config.get("external_id"):
            job.external_id = int(job_config["external_id"])

        if job_type.startswith("CUSTOMER_MATCH"):
            job.customer_match_user_list_metadata.user_list = (
                client.get_service("UserListService").user_list_path(
                    customer_id, job_config["list_id"]
                )
            )
        elif job_config.get("store_sales_metadata"):
            merge_into_message(job.store_sales_metadata, job_config["store_sales_metadata"])

        service = client.get_service("OfflineUserDataJobService")
        try:
            response = await self._call(
                service.create_offline_user_data_job, customer_id=customer_id, job=job
            )
        except UploadError:
            # A cached list id may point at a list removed since it was looked up
            if self.cache and job_type.startswith("CUSTOMER_MATCH") and job_config.get("list_name"):
                await self.cache.invalidate("user_list", customer_id, job_config["list_name"])
            raise
        logger.info(f"Created offline user data job {response.resource_name}")
        return response.resource_name

    async def add_offline_user_data_job_operations(
        self,
        job_config: Dict[str, Any],
        job_resource_name: str,
        records: Sequence[str],
    ) -> BatchResult:
        """
        Add one batch of user data to a job.

        ``job_config["operation"]`` selects ``create`` (default) or ``remove``.

        Returns:
            Batch result carrying per-record failure messages
        """
        client = self.get_client(job_config.get("login_customer_id"))
        remove = job_config.get("operation", "create") == "remove"

        parsed, errors = parse_json_records(records)
        operations = []
        positions = []
        for position, record in parsed:
            user_data = build_user_data(record)
            if not user_data.get("user_identifiers"):
                errors.append(f"Record {position} has no user identifiers: {json.dumps(record)}")
                continue
            operation = client.get_type("OfflineUserDataJobOperation")
            target = operation.remove if remove else operation.create
            merge_into_message(target, user_data)
            operations.append(operation)
            positions.append(position)

        if operations:
            request = client.get_type("AddOfflineUserDataJobOperationsRequest")
            request.resource_name = job_resource_name
            request.enable_partial_failure = True
            request.operations = operations

            service = client.get_service("OfflineUserDataJobService")
            response = await self._call(service.add_offline_user_data_job_operations, request=request)
            errors.extend(self._partial_failure_messages(client, response, positions))

        logger.debug(
            f"Added {len(operations)} operations to {job_resource_name} ({len(errors)} errors)"
        )
        return BatchResult.from_errors(errors)

    async def run_offline_user_data_job(self, job_config: Dict[str, Any], job_resource_name: str) -> None:
        """Start processing a job; the long-running operation is not awaited."""
        client = self.get_client(job_config.get("login_customer_id"))
        service = client.get_service("OfflineUserDataJobService")
        await self._call(service.run_offline_user_data_job, resource_name=job_resource_name)
        logger.info(f"Started offline user data job {job_resource_name}")


class MockGoogleAdsGateway:
    """
    Simulated Google Ads gateway for development.

    Accepts every well-formed record without calling the API.
    """

    def __init__(self) -> None:
        self.records_sent = 0
        self._next_id = 1000
        logger.info("MockGoogleAdsGateway initialized")

    def _new_id(self) -> str:
        self._next_id += 1
        return str(self._next_id)

    async def upload_conversion_adjustments(
        self, target: Dict[str, Any], records: Sequence[str]
    ) -> BatchResult:
        parsed, errors = parse_json_records(records)
        self.records_sent += len(parsed)
        logger.debug(
            f"Mock conversion adjustment upload for customer {target.get('customerId')}: "
            f"{len(parsed)} records"
        )
        return BatchResult.from_errors(errors)

    async def get_or_create_user_list(self, job_config: Dict[str, Any]) -> str:
        return str(job_config.get("list_id") or self._new_id())

    async def create_offline_user_data_job(self, job_config: Dict[str, Any]) -> str:
        customer_id = normalize_customer_id(job_config.get("customer_id"))
        return f"customers/{customer_id}/offlineUserDataJobs/{self._new_id()}"

    async def add_offline_user_data_job_operations(
        self, job_config: Dict[str, Any], job_resource_name: str, records: Sequence[str]
    ) -> BatchResult:
        parsed, errors = parse_json_records(records)
        self.records_sent += len(parsed)
        logger.debug(f"Mock add of {len(parsed)} operations to {job_resource_name}")
        return BatchResult.from_errors(errors)

    async def run_offline_user_data_job(self, job_config: Dict[str, Any], job_resource_name: str) -> None:
        logger.debug(f"Mock run of {job_resource_name}")


def create_google_ads_gateway(
    credentials: Optional[Dict[str, Any]] = None,
    cache: Optional[ResourceCache] = None,
    use_mock: bool = True,
) -> Any:
    """
    Factory function to create the Google Ads gateway.

    Args:
        credentials: Google Ads client configuration
        cache: Resource-name cache
        use_mock: Whether to use the simulated gateway

    Returns:
        GoogleAdsGateway or MockGoogleAdsGateway
    """
    if use_mock:
        return MockGoogleAdsGateway()
    if not credentials or not credentials.get("developer_token"):
        raise ConfigurationError("Google Ads credentials are required outside development")
    return GoogleAdsGateway(credentials=credentials, cache=cache)
