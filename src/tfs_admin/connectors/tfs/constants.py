"""
Team Foundation Server specific constants.
These constants are specific to the TFS / Azure DevOps Server REST connector.
"""


# REST API versions (TFS 2019 / Azure DevOps Server 2019 and later)
API_VERSIONS: dict[str, str] = {
    'connection': '5.0-preview.1',
    'collections': '5.0',
    'projects': '5.0',
    'queries': '5.0',
    'fields': '5.0',
    'wiql': '5.0',
    'workitem': '5.0'
}

DEFAULT_BATCH_SIZE: int = 200  # Work item batch read maximum
DEFAULT_PAGE_SIZE: int = 100  # $top for collection and project listings
DEFAULT_QUERY_DEPTH: int = 2  # Server maximum for $depth on query trees
RETRY_DELAY_SECONDS: float = 2.0

JSON_PATCH_CONTENT_TYPE: str = "application/json-patch+json"

# Azure AD resource scope for Azure DevOps client credential flow
OAUTH2_SCOPES: list[str] = ["499b84ac-1321-427f-aa17-267ca6975798/.default"]
