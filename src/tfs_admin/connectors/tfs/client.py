"""
Team Foundation Server REST API client.
Enumerates collections, projects, queries and fields, and reads and updates
work items for the administrative commands.
"""

import asyncio
import json
import logging
from typing import Any
from urllib.parse import quote

import aiohttp

from tfs_admin.errors import TfsApiError, TfsAuthenticationError, TfsConnectionError
from tfs_admin.schemas import FieldDefinition, ProjectCollection, QueryDefinition, TeamProject

from .auth import TfsAuthMixin
from .constants import (
    API_VERSIONS,
    DEFAULT_BATCH_SIZE,
    DEFAULT_PAGE_SIZE,
    DEFAULT_QUERY_DEPTH,
    JSON_PATCH_CONTENT_TYPE,
    RETRY_DELAY_SECONDS,
)

logger = logging.getLogger(__name__)


class Client(TfsAuthMixin):
    """Client for TFS REST API operations with support for PAT and OAuth2 authentication.

    The client owns one HTTP session between connect() and close(); use it as
    an async context manager:

        async with Client(server_url, collection, auth_token=pat) as client:
            projects = await client.get_team_projects()
    """

    def __init__(self, server_url: str, collection: str, auth_token: str = None,
                 client_id: str = None, client_secret: str = None,
                 tenant_id: str = None, use_oauth2: bool = False,
                 timeout_seconds: int = 300, max_retries: int = 3):
        super().__init__()

        if not server_url:
            raise ValueError("Server URL is required")
        if not collection:
            raise ValueError("Collection is required")
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")

        self.server_url = server_url.rstrip('/')
        self.collection = collection
        self.use_oauth2 = use_oauth2
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.batch_size = DEFAULT_BATCH_SIZE
        self.page_size = DEFAULT_PAGE_SIZE

        self._session: aiohttp.ClientSession | None = None

        if use_oauth2:
            if not all([client_id, client_secret, tenant_id]):
                raise ValueError("OAuth2 requires client_id, client_secret, and tenant_id")
            self.client_id = client_id
            self.client_secret = client_secret
            self.tenant_id = tenant_id
        else:
            if not auth_token:
                raise ValueError("Personal Access Token is required when not using OAuth2")
            self.pat = auth_token

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> 'Client':
        """Create a Client from a configuration dictionary"""
        auth_type = config.get('auth_type', 'pat')
        common = {
            'server_url': config.get('server_url'),
            'collection': config.get('collection'),
            'timeout_seconds': config.get('timeout_seconds', 300),
            'max_retries': config.get('max_retries', 3)
        }
        if auth_type == "pat":
            return cls(auth_token=config.get('pat'), use_oauth2=False, **common)
        elif auth_type == "oauth2":
            return cls(
                client_id=config.get('client_id'),
                client_secret=config.get('client_secret'),
                tenant_id=config.get('tenant_id'),
                use_oauth2=True,
                **common
            )
        else:
            raise ValueError(f"Unsupported authentication type: {auth_type}")

    # Lifecycle

    @property
    def is_connected(self) -> bool:
        return self._session is not None and not self._session.closed

    async def connect(self) -> None:
        """Open the HTTP session and verify the credentials against the collection"""
        if self.is_connected:
            return

        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)
        self._session = aiohttp.ClientSession(timeout=timeout)

        url = self._api_url(f"{self.collection_url}/_apis/connectionData", 'connection')
        try:
            data = await self.invoke_rest_with_retry("GET", url)
        except Exception:
            await self.close()
            raise

        user = (data.get('authenticatedUser') or {}).get('providerDisplayName', 'unknown user')
        logger.info(f"Connected to {self.collection_url} as {user}")

    async def close(self) -> None:
        """Release the HTTP session"""
        if self._session is not None:
            await self._session.close()
            self._session = None
            logger.debug(f"Closed connection to {self.collection_url}")

    async def __aenter__(self) -> 'Client':
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # URL helpers

    @property
    def collection_url(self) -> str:
        return f"{self.server_url}/{quote(self.collection)}"

    def project_url(self, project: str) -> str:
        return f"{self.collection_url}/{quote(project)}"

    @staticmethod
    def _api_url(base: str, api: str, **params: Any) -> str:
        query = "&".join(f"{key}={quote(str(value), safe=',')}" for key, value in params.items())
        suffix = f"&{query}" if query else ""
        return f"{base}?api-version={API_VERSIONS[api]}{suffix}"

    # REST invocation

    async def invoke_rest_with_retry(
        self,
        method: str,
        url: str,
        body: Any = None,
        content_type: str | None = None
    ) -> dict[str, Any]:
        """Invoke REST API, retrying transport errors and server-side failures.

        Client errors (4xx) are raised immediately; authentication failures
        raise TfsAuthenticationError.
        """
        if not self.is_connected:
            raise TfsConnectionError("Client is not connected; call connect() first")

        last_error: Exception | None = None
        for attempt in range(1, self.max_retries + 1):
            headers = await self._get_auth_headers()
            request_kwargs: dict[str, Any] = {'headers': headers}
            if body is not None:
                if content_type:
                    headers['Content-Type'] = content_type
                    request_kwargs['data'] = json.dumps(body)
                else:
                    request_kwargs['json'] = body

            try:
                async with self._session.request(method, url, **request_kwargs) as response:
                    if response.status < 400:
                        try:
                            return await response.json(content_type=None)
                        except json.JSONDecodeError as e:
                            # 203 with an HTML sign-in page means the credentials were not accepted
                            if response.status == 203:
                                raise TfsAuthenticationError(
                                    203, url, "Server returned a sign-in page instead of JSON"
                                ) from e
                            raise TfsApiError(response.status, url, f"Response is not JSON: {e}") from e

                    message = (await response.text())[:500]
                    if response.status in (401, 403):
                        raise TfsAuthenticationError(response.status, url, message)
                    if response.status < 500:
                        raise TfsApiError(response.status, url, message)
                    last_error = TfsApiError(response.status, url, message)
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_error = TfsConnectionError(f"Request to {url} failed: {e}")

            if attempt < self.max_retries:
                logger.warning(f"{method} {url} failed (attempt {attempt}/{self.max_retries}): {last_error}")
                await asyncio.sleep(RETRY_DELAY_SECONDS)

        raise last_error

    async def _get_paged(self, base: str, api: str) -> list[dict[str, Any]]:
        """Collect every page of a $top/$skip listing"""
        items: list[dict[str, Any]] = []
        skip = 0
        while True:
            url = self._api_url(base, api, **{'$top': self.page_size, '$skip': skip})
            response = await self.invoke_rest_with_retry("GET", url)
            page = response.get('value', [])
            items.extend(page)
            if len(page) < self.page_size:
                return items
            skip += len(page)

    # Catalog

    async def get_project_collections(self) -> list[ProjectCollection]:
        """List the project collections hosted by the server"""
        values = await self._get_paged(f"{self.server_url}/_apis/projectCollections", 'collections')
        logger.info(f"Found {len(values)} project collections on {self.server_url}")
        return [ProjectCollection.model_validate(value) for value in values]

    async def get_team_projects(self) -> list[TeamProject]:
        """List the team projects of the connected collection"""
        values = await self._get_paged(f"{self.collection_url}/_apis/projects", 'projects')
        logger.info(f"Found {len(values)} team projects in {self.collection}")
        return [TeamProject.model_validate(value) for value in values]

    # Work item tracking metadata

    async def get_query_definitions(self, project: str, depth: int = DEFAULT_QUERY_DEPTH) -> list[QueryDefinition]:
        """Get the complete stored query tree of a project, WIQL text included.

        The server expands at most two levels per request, so folders it
        reports as having unexpanded children are fetched one by one.
        """
        url = self._api_url(
            f"{self.project_url(project)}/_apis/wit/queries", 'queries',
            **{'$depth': depth, '$expand': 'wiql'}
        )
        response = await self.invoke_rest_with_retry("GET", url)
        tree = [QueryDefinition.model_validate(value) for value in response.get('value', [])]
        await self._expand_query_folders(project, tree, depth)
        return tree

    async def _expand_query_folders(self, project: str, nodes: list[QueryDefinition], depth: int) -> None:
        for node in nodes:
            if node.is_folder and node.has_children and not node.children:
                url = self._api_url(
                    f"{self.project_url(project)}/_apis/wit/queries/{node.id}", 'queries',
                    **{'$depth': depth, '$expand': 'wiql'}
                )
                folder = QueryDefinition.model_validate(await self.invoke_rest_with_retry("GET", url))
                node.children = folder.children
                logger.debug(f"Expanded query folder {node.path}: {len(node.children)} entries")
            await self._expand_query_folders(project, node.children, depth)

    async def get_fields(self, project: str | None = None,
                         work_item_type: str | None = None) -> list[FieldDefinition]:
        """Get field definitions at collection, project or work item type scope"""
        if work_item_type:
            if not project:
                raise ValueError("A project is required to list the fields of a work item type")
            base = f"{self.project_url(project)}/_apis/wit/workitemtypes/{quote(work_item_type)}/fields"
        elif project:
            base = f"{self.project_url(project)}/_apis/wit/fields"
        else:
            base = f"{self.collection_url}/_apis/wit/fields"

        response = await self.invoke_rest_with_retry("GET", self._api_url(base, 'fields'))
        fields = [FieldDefinition.model_validate(value) for value in response.get('value', [])]
        logger.info(f"Found {len(fields)} fields")
        return fields

    async def get_field_details(self, reference_name: str) -> FieldDefinition:
        """Get the full definition of one field"""
        url = self._api_url(f"{self.collection_url}/_apis/wit/fields/{quote(reference_name)}", 'fields')
        response = await self.invoke_rest_with_retry("GET", url)
        return FieldDefinition.model_validate(response)

    # Work items

    async def query_work_item_ids(self, wiql: str, project: str) -> list[int]:
        """Run a WIQL query and return the matching work item IDs"""
        url = self._api_url(f"{self.project_url(project)}/_apis/wit/wiql", 'wiql')
        response = await self.invoke_rest_with_retry("POST", url, body={'query': wiql})

        # Flat queries return workItems, link queries return workItemRelations
        if 'workItems' in response:
            return [item['id'] for item in response['workItems']]
        elif 'workItemRelations' in response:
            return [rel['target']['id'] for rel in response['workItemRelations'] if rel.get('target')]
        else:
            raise TfsApiError(200, url, "Unable to locate work item IDs in WIQL response")

    async def get_work_items(self, ids: list[int], fields: list[str] | None = None) -> list[dict[str, Any]]:
        """Get work items in batches, limited to the given fields when provided.

        Items that no longer exist or cannot be read are left out of the result.
        """
        work_items: list[dict[str, Any]] = []

        for i in range(0, len(ids), self.batch_size):
            batch_ids = ids[i:i + self.batch_size]
            # Deleted or inaccessible ids come back as null instead of failing the batch
            params: dict[str, Any] = {'ids': ",".join(map(str, batch_ids)), 'errorPolicy': 'omit'}
            if fields:
                params['fields'] = ",".join(fields)

            url = self._api_url(f"{self.collection_url}/_apis/wit/workitems", 'workitem', **params)
            response = await self.invoke_rest_with_retry("GET", url)
            returned = response.get('value', [])
            work_items.extend(item for item in returned if item is not None)
            if None in returned:
                logger.warning(f"{returned.count(None)} work items in batch starting at {batch_ids[0]} could not be read")
            logger.debug(f"Fetched {min(i + self.batch_size, len(ids))}/{len(ids)} work items")

        return work_items

    async def update_work_item_field(self, work_item_id: int, field: str, value: Any) -> dict[str, Any]:
        """Set one field of a work item and save it"""
        url = self._api_url(f"{self.collection_url}/_apis/wit/workitems/{work_item_id}", 'workitem')
        patch = [{'op': 'add', 'path': f"/fields/{field}", 'value': value}]
        return await self.invoke_rest_with_retry(
            "PATCH", url, body=patch, content_type=JSON_PATCH_CONTENT_TYPE
        )
