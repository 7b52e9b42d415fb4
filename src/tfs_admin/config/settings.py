"""
Configuration for tfs-admin, read from the environment and an optional .env file.
"""

from dotenv import load_dotenv

from tfs_admin.utils.env import get_env

# Load environment variables from .env file
load_dotenv()


class Settings:
    """Connection and runtime settings"""

    # Server connection
    TFS_SERVER_URL: str = get_env("TFS_SERVER_URL", "")
    TFS_COLLECTION: str = get_env("TFS_COLLECTION", "DefaultCollection")
    TFS_TIMEOUT_SECONDS: int = get_env("TFS_TIMEOUT_SECONDS", 300)
    TFS_MAX_RETRIES: int = get_env("TFS_MAX_RETRIES", 3)

    # Authentication: "pat" or "oauth2"
    TFS_AUTH_TYPE: str = get_env("TFS_AUTH_TYPE", "pat")
    TFS_PAT: str = get_env("TFS_PAT", "")
    TFS_CLIENT_ID: str = get_env("TFS_CLIENT_ID", "")
    TFS_CLIENT_SECRET: str = get_env("TFS_CLIENT_SECRET", "")
    TFS_TENANT_ID: str = get_env("TFS_TENANT_ID", "")

    LOG_LEVEL: str = get_env("LOG_LEVEL", "INFO")


# Global settings instance
settings = Settings()
