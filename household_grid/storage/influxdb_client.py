"""InfluxDB client for simulation telemetry.

Writes battery level, bill and diagnostic observations to an InfluxDB
instance so a run can be inspected on a dashboard. Storage is disabled by
default; the console output does not depend on it.
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from influxdb_client import BucketRetentionRules, InfluxDBClient, Point
from influxdb_client.client.write_api import SYNCHRONOUS, WriteOptions

from household_grid.models import Observation

logger = logging.getLogger(__name__)


@dataclass
class InfluxDBConfig:
    """Configuration for InfluxDB connection.

    Supports environment variable overrides:
    - INFLUXDB_URL: Server URL
    - INFLUXDB_TOKEN: Authentication token
    - INFLUXDB_ORG: Organization name
    - INFLUXDB_BUCKET: Bucket name

    Attributes:
        url: InfluxDB server URL (e.g., "http://localhost:8086")
        token: Authentication token for InfluxDB
        org: Organization name in InfluxDB
        bucket: Bucket name for storing data
        enabled: Whether InfluxDB storage is enabled
        retention_days: Data retention period in days (default: 7)
        batch_size: Number of points to batch before writing (default: 1)
        flush_interval_ms: Milliseconds between batch flushes (default: 1000)
    """

    url: str = "http://localhost:8086"
    token: str = ""
    org: str = "household-grid"
    bucket: str = "grid-telemetry"
    enabled: bool = False
    retention_days: int = 7
    batch_size: int = 1
    flush_interval_ms: int = 1000

    def __post_init__(self) -> None:
        """Apply environment variable overrides only when values are at defaults.

        Precedence: explicit args > env vars > defaults
        """
        if self.url == "http://localhost:8086":
            self.url = os.environ.get("INFLUXDB_URL", self.url)
        if self.token == "":
            self.token = os.environ.get("INFLUXDB_TOKEN", self.token)
        if self.org == "household-grid":
            self.org = os.environ.get("INFLUXDB_ORG", self.org)
        if self.bucket == "grid-telemetry":
            self.bucket = os.environ.get("INFLUXDB_BUCKET", self.bucket)


class InfluxDBStorage:
    """InfluxDB storage client for grid observations.

    Each observation becomes one point: the measurement is the observation
    kind (``battery``, ``bill``, ``diagnostic``), ``device_id`` is a tag,
    and the tick plus the observation payload are fields.

    Example:
        >>> config = InfluxDBConfig(token="my-token", enabled=True)
        >>> with InfluxDBStorage(config) as storage:
        ...     storage.write(observation, device_id="household-grid-001")
    """

    def __init__(self, config: InfluxDBConfig) -> None:
        """Initialize InfluxDB storage.

        Args:
            config: InfluxDB configuration

        Raises:
            ValueError: If storage is enabled without a token
        """
        self.config = config
        self._client: Optional[InfluxDBClient] = None
        self._write_api = None

        if not config.enabled:
            logger.info("InfluxDB storage is disabled")
            return

        if not config.token:
            raise ValueError("InfluxDB token is required when storage is enabled")

        self._connect()

    def _connect(self) -> None:
        """Establish connection to InfluxDB."""
        try:
            self._client = InfluxDBClient(
                url=self.config.url,
                token=self.config.token,
                org=self.config.org,
            )

            if self.config.batch_size > 1:
                self._write_api = self._client.write_api(
                    write_options=WriteOptions(
                        batch_size=self.config.batch_size,
                        flush_interval=self.config.flush_interval_ms,
                    )
                )
            else:
                self._write_api = self._client.write_api(write_options=SYNCHRONOUS)

            logger.info(
                "Connected to InfluxDB at %s (org=%s, bucket=%s)",
                self.config.url,
                self.config.org,
                self.config.bucket,
            )
        except Exception as e:
            logger.exception("Failed to connect to InfluxDB: %s", e)
            raise

    def is_connected(self) -> bool:
        """Check if connected to InfluxDB.

        Returns:
            True if connected and ready to write
        """
        if not self.config.enabled:
            return False
        return self._client is not None and self._write_api is not None

    def health_check(self) -> bool:
        """Perform a health check on the InfluxDB connection."""
        if not self.is_connected():
            return False

        try:
            health = self._client.health()
            return health.status == "pass"
        except Exception as e:
            logger.warning("InfluxDB health check failed: %s", e)
            return False

    def write(self, observation: Observation, device_id: str) -> bool:
        """Write one observation to InfluxDB.

        Args:
            observation: Observation to write
            device_id: Tag identifying the simulated household

        Returns:
            True if write was successful, False otherwise
        """
        if not self.config.enabled:
            return True  # Silently succeed when disabled

        if not self.is_connected():
            logger.warning("Not connected to InfluxDB, skipping write")
            return False

        try:
            self._write_api.write(
                bucket=self.config.bucket,
                org=self.config.org,
                record=self._observation_to_point(observation, device_id),
            )
            return True
        except Exception as e:
            logger.exception("Failed to write to InfluxDB: %s", e)
            return False

    def _observation_to_point(
        self,
        observation: Observation,
        device_id: str,
        timestamp: Optional[datetime] = None,
    ) -> Point:
        """Convert an observation to an InfluxDB point."""
        point = (
            Point(observation.kind)
            .tag("device_id", device_id)
            .field("tick", observation.tick)
            .time(timestamp or datetime.now(timezone.utc))
        )
        for key, value in observation.fields().items():
            if key == "source":
                point = point.tag(key, value)
            else:
                point = point.field(key, value)
        return point

    def setup_retention_policy(self) -> bool:
        """Create the bucket, or update its retention, to the configured period.

        Returns:
            True if successful, False otherwise
        """
        if not self.is_connected():
            return False

        try:
            buckets_api = self._client.buckets_api()
            org_api = self._client.organizations_api()

            orgs = org_api.find_organizations(org=self.config.org)
            if not orgs:
                logger.error("Organization '%s' not found", self.config.org)
                return False
            org_id = orgs[0].id

            existing_bucket = buckets_api.find_bucket_by_name(self.config.bucket)
            retention_seconds = self.config.retention_days * 24 * 60 * 60

            if existing_bucket:
                existing_bucket.retention_rules = [
                    {"type": "expire", "everySeconds": retention_seconds}
                ]
                buckets_api.update_bucket(bucket=existing_bucket)
                logger.info(
                    "Updated bucket '%s' retention to %d days",
                    self.config.bucket,
                    self.config.retention_days,
                )
            else:
                buckets_api.create_bucket(
                    bucket_name=self.config.bucket,
                    org_id=org_id,
                    retention_rules=BucketRetentionRules(
                        type="expire", every_seconds=retention_seconds
                    ),
                )
                logger.info(
                    "Created bucket '%s' with %d days retention",
                    self.config.bucket,
                    self.config.retention_days,
                )

            return True
        except Exception as e:
            logger.exception("Failed to setup retention policy: %s", e)
            return False

    def close(self) -> None:
        """Close the InfluxDB connection."""
        if self._write_api:
            try:
                self._write_api.close()
            except Exception as e:
                logger.debug("Error closing InfluxDB write API: %s", e)
            self._write_api = None

        if self._client:
            try:
                self._client.close()
            except Exception as e:
                logger.debug("Error closing InfluxDB client: %s", e)
            self._client = None

    def __enter__(self) -> "InfluxDBStorage":
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()
