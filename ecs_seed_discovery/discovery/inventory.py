"""Paginated DescribeInstances query through a borrowed ECS client."""

from __future__ import annotations

import logging

from ..exceptions import EcsApiError
from .client_manager import EcsClientManager
from .models import FilterCriteria, InstanceRecord

logger = logging.getLogger(__name__)

PAGE_SIZE = 100


class InventoryQuery:
    """Lists every running instance matching the server-side part of the filter criteria."""

    def __init__(self, client_manager: EcsClientManager, criteria: FilterCriteria):
        self._manager = client_manager
        self._tags = self._server_side_tags(criteria)

    @staticmethod
    def _server_side_tags(criteria: FilterCriteria) -> dict[str, str | None]:
        """Single-value keys are matched by the API; multi-value keys are only required to exist.

        The API ANDs every tag entry, so an OR across values is evaluated client-side.
        """
        tags: dict[str, str | None] = dict(criteria.single_value_tags)
        tags.update(dict.fromkeys(criteria.multi_value_tags))
        return tags

    def fetch_instances(self) -> list[InstanceRecord]:
        """Fetch all pages. On an API error, return what was gathered so far."""
        instances: list[InstanceRecord] = []

        with self._manager.client() as reference:
            page_number = 1
            while True:
                try:
                    page = reference.client.describe_instances(
                        page_number=page_number,
                        page_size=PAGE_SIZE,
                        tags=self._tags,
                    )
                except EcsApiError as exc:
                    logger.info("Exception while retrieving instance list from ECS API: %s", exc)
                    logger.debug("Full exception:", exc_info=True)
                    return instances

                if not page:
                    break

                instances.extend(page)
                page_number += 1

        logger.debug(
            "Fetched %d instances in %d pages", len(instances), page_number - 1,
            extra={"total_instances": len(instances)},
        )
        return instances
