"""Shopify implementation of the remote mutation API.

Requests are built by the batch's ``MutationKind``; failures coming out of
the client are mapped onto the bulk job error types at each setup step.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence, Tuple

from shopbulk.adapters.registry import get_mutation_kind
from shopbulk.adapters.remote_api import RemoteMutationAPI
from shopbulk.core.exceptions import JobStartError, ShopbulkError, StagingError, UploadError
from shopbulk.models.batch import Batch, ExecutionResponse, ThrottleState
from shopbulk.models.bulk_job import BulkJob, StagedUploadTarget
from shopbulk.services.mutations import MutationKind
from shopbulk.services.shopify import ShopifyClient, extract_throttle


class ShopifyRemoteAPI(RemoteMutationAPI):
    """Drive Shopify Admin GraphQL mutations through a ``ShopifyClient``.

    Args:
        client: The GraphQL client to use.
        kind: Force a mutation kind; by default it is looked up from each
              batch's operation kind.
    """

    def __init__(self, client: ShopifyClient, kind: Optional[MutationKind] = None) -> None:
        self._client = client
        self._kind = kind

    async def execute(self, batch: Batch) -> ExecutionResponse:
        kind = self._kind or get_mutation_kind(batch.kind)
        query, variables = kind.build_request(batch)
        body = await self._client.graphql(query, variables)

        data = body.get("data") or {}
        return ExecutionResponse(
            data=data,
            user_errors=kind.extract_user_errors(data),
            throttle=extract_throttle(body),
        )

    async def probe_throttle(self) -> Optional[ThrottleState]:
        return await self._client.get_throttle_status()

    async def create_staged_upload(self, filename: str, mime_type: str) -> StagedUploadTarget:
        try:
            payload = await self._client.create_staged_upload(filename, mime_type)
        except ShopbulkError as exc:
            raise StagingError(str(exc), details=getattr(exc, "details", None)) from exc

        target = StagedUploadTarget.from_payload(payload)
        if not target.url or not target.path_key:
            raise StagingError("Staged upload target is missing its url or key", details=payload)
        return target

    async def upload_file(
        self,
        url: str,
        parameters: Sequence[Tuple[str, str]],
        path: Path,
    ) -> None:
        try:
            await self._client.upload_staged_file(url, parameters, path)
        except ShopbulkError as exc:
            raise UploadError(str(exc), details=getattr(exc, "details", None)) from exc

    async def start_async_job(self, mutation_template: str, path_key: str) -> BulkJob:
        try:
            payload = await self._client.start_bulk_operation(mutation_template, path_key)
        except ShopbulkError as exc:
            raise JobStartError(str(exc), details=getattr(exc, "details", None)) from exc
        return BulkJob.from_payload(payload)

    async def get_job_status(self) -> Optional[BulkJob]:
        payload = await self._client.get_bulk_operation_status()
        if not payload:
            return None
        return BulkJob.from_payload(payload)
