"""Alibaba Cloud SDK client for listing ECS instances."""

from __future__ import annotations

import logging
from collections.abc import Mapping

import requests
from alibabacloud_credentials.exceptions import CredentialException
from alibabacloud_ecs20140526 import models as ecs_models
from alibabacloud_ecs20140526.client import Client as EcsSdkClient
from alibabacloud_tea_openapi import models as open_api_models
from alibabacloud_tea_util import models as util_models
from Tea.exceptions import TeaException, UnretryableException

from ..exceptions import EcsApiError, LifecycleError
from .credentials import ClientSettings
from .models import InstanceRecord, parse_instances

logger = logging.getLogger(__name__)

RUNNING = "Running"


class EcsApi:
    """Thin wrapper around the ECS ``DescribeInstances`` call for one region and credential set."""

    def __init__(self, settings: ClientSettings):
        self._settings = settings
        self._runtime = util_models.RuntimeOptions(
            connect_timeout=int(settings.connect_timeout * 1000),
            read_timeout=int(settings.read_timeout * 1000),
            autoretry=False,
        )

        config = open_api_models.Config(
            credential=settings.credentials.to_credential_client(),
            region_id=settings.region,
            connect_timeout=int(settings.connect_timeout * 1000),
            read_timeout=int(settings.read_timeout * 1000),
        )
        if settings.endpoint:
            logger.debug("Using explicit ECS endpoint [%s]", settings.endpoint)
            config.endpoint = settings.endpoint

        self._client: EcsSdkClient | None = EcsSdkClient(config)

    @property
    def closed(self) -> bool:
        return self._client is None

    def describe_instances(
        self,
        page_number: int,
        page_size: int,
        tags: Mapping[str, str | None] | None = None,
    ) -> list[InstanceRecord]:
        """Return one page of running instances.

        ``tags`` maps tag key to the required value, or to None to only require the key.
        An empty list means there are no more pages.
        """
        if self._client is None:
            raise LifecycleError("ECS client used after it was closed")

        request = ecs_models.DescribeInstancesRequest(
            region_id=self._settings.region,
            status=RUNNING,
            page_number=page_number,
            page_size=page_size,
            tag=[
                ecs_models.DescribeInstancesRequestTag(key=key, value=value)
                for key, value in (tags or {}).items()
            ] or None,
        )

        try:
            response = self._client.describe_instances_with_options(request, self._runtime)
        except TeaException as exc:
            request_id = exc.data.get("RequestId") if isinstance(exc.data, dict) else None
            raise EcsApiError(
                f"DescribeInstances failed: {exc.code}: {exc.message}",
                code=exc.code,
                request_id=request_id,
            ) from exc
        except (UnretryableException, CredentialException, requests.RequestException) as exc:
            raise EcsApiError(f"DescribeInstances request failed: {exc}") from exc

        body = response.body.to_map() if response.body is not None else {}
        instances = parse_instances(body)
        logger.debug(
            "DescribeInstances page %d returned %d instances (total %s)",
            page_number, len(instances), body.get("TotalCount"),
        )
        return instances

    def close(self) -> None:
        """Drop the SDK client; further calls raise LifecycleError."""
        if self._client is not None:
            logger.debug("Closing ECS client for region %s", self._settings.region)
            self._client = None
