"""AWS client for EC2 instance inventory operations."""

from typing import Any

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from nodegc.core.exceptions import AWSError, InstanceNotFoundError
from nodegc.utils.logging import get_logger
from nodegc.utils.rate_limiter import rate_limited
from nodegc.utils.retry import retry_on_exception

logger = get_logger(__name__)

INSTANCE_NOT_FOUND_CODES = frozenset({"InvalidInstanceID.NotFound"})


class AWSClient:
    """AWS client for EC2 operations."""

    def __init__(
        self,
        region: str = "us-east-1",
        profile: str | None = None,
        session: boto3.Session | None = None,
        max_pool_connections: int = 50,
    ):
        """Initialize AWS client.

        Args:
            region: AWS region
            profile: AWS profile name (optional)
            session: Existing boto3 session (optional, overrides profile)
            max_pool_connections: HTTP connection pool size; deletions run
                concurrently from worker threads

        Raises:
            AWSError: If the boto3 session or EC2 client cannot be created
        """
        self.region = region
        self.profile = profile

        try:
            if session:
                self.session = session
            elif profile:
                self.session = boto3.Session(profile_name=profile, region_name=region)
            else:
                self.session = boto3.Session(region_name=region)

            self.ec2 = self.session.client(
                "ec2", config=Config(max_pool_connections=max_pool_connections)
            )
        except BotoCoreError as e:
            logger.error("aws_client_init_failed", region=region, profile=profile, error=str(e))
            raise AWSError(f"Failed to initialize AWS client: {e}") from e

        logger.debug("aws_client_initialized", region=region, profile=profile)

    @rate_limited("aws_api")
    @retry_on_exception(exceptions=(AWSError,), max_attempts=3)
    def describe_instances(self, filters: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Describe every instance matching the given EC2 filters.

        Pages through ``DescribeInstances`` and flattens reservations.

        Args:
            filters: EC2 ``Filters`` parameter

        Returns:
            List of raw instance dictionaries

        Raises:
            AWSError: If listing fails
        """
        try:
            logger.debug("describing_instances", filters=filters)

            paginator = self.ec2.get_paginator("describe_instances")
            instances: list[dict[str, Any]] = []
            for page in paginator.paginate(Filters=filters):
                for reservation in page.get("Reservations", []):
                    instances.extend(reservation.get("Instances", []))

            logger.info("instances_described", count=len(instances))
            return instances

        except ClientError as e:
            error_code = e.response["Error"]["Code"]
            logger.error("describe_instances_failed", error_code=error_code)
            raise AWSError(f"Failed to describe instances: {error_code}") from e
        except BotoCoreError as e:
            logger.error("describe_instances_failed", error=str(e))
            raise AWSError(f"Failed to describe instances: {e}") from e

    @rate_limited("aws_api")
    @retry_on_exception(exceptions=(AWSError,), max_attempts=3, ignore=(InstanceNotFoundError,))
    def terminate_instance(self, instance_id: str) -> str | None:
        """Terminate a single instance.

        Args:
            instance_id: EC2 instance ID

        Returns:
            The instance state reported after the call (e.g. "shutting-down")

        Raises:
            InstanceNotFoundError: If the instance does not exist
            AWSError: If termination fails
        """
        try:
            logger.debug("terminating_instance", instance_id=instance_id)

            response = self.ec2.terminate_instances(InstanceIds=[instance_id])
            terminating = response.get("TerminatingInstances", [])
            current_state = terminating[0]["CurrentState"]["Name"] if terminating else None

            logger.info("instance_terminated", instance_id=instance_id, state=current_state)
            return current_state

        except ClientError as e:
            error_code = e.response["Error"]["Code"]
            if error_code in INSTANCE_NOT_FOUND_CODES:
                logger.debug("instance_already_gone", instance_id=instance_id)
                raise InstanceNotFoundError(f"Instance not found: {instance_id}") from e

            logger.error(
                "terminate_instance_failed", instance_id=instance_id, error_code=error_code
            )
            raise AWSError(f"Failed to terminate instance {instance_id}: {error_code}") from e
        except BotoCoreError as e:
            logger.error("terminate_instance_failed", instance_id=instance_id, error=str(e))
            raise AWSError(f"Failed to terminate instance {instance_id}: {e}") from e
