from __future__ import annotations

from pathlib import Path


class EXIT_CODES:
    SUCCESS = 0
    ERROR = 1


# Config files
DEFAULT_HUBSPOT_CONFIG_YAML_FILE_NAME = "hubspot.config.yml"
HUBSPOT_CONFIG_YAML_FILE_NAMES = ("hubspot.config.yml", "hubspot.config.yaml")
GLOBAL_CONFIG_DIR_NAME = ".hscli"
GLOBAL_CONFIG_FILE_NAME = "config.yml"
DEFAULT_ACCOUNT_OVERRIDE_FILE_NAME = ".hsaccount"
PROJECT_CONFIG_FILE = "hsproject.json"


def global_config_path() -> Path:
    return Path.home() / GLOBAL_CONFIG_DIR_NAME / GLOBAL_CONFIG_FILE_NAME


# Environments
ENVIRONMENTS = ("prod", "qa")
API_BASE_URLS = {
    "prod": "https://api.hubapi.com",
    "qa": "https://api.hubapiqa.com",
}
APP_BASE_URLS = {
    "prod": "https://app.hubspot.com",
    "qa": "https://app.hubspotqa.com",
}

# Auth
PERSONAL_ACCESS_KEY_AUTH_METHOD = "personalaccesskey"
OAUTH_AUTH_METHOD = "oauth2"
API_KEY_AUTH_METHOD = "apikey"
AUTH_METHODS = (PERSONAL_ACCESS_KEY_AUTH_METHOD, OAUTH_AUTH_METHOD, API_KEY_AUTH_METHOD)
OAUTH_SCOPES = ("content", "hubdb", "files")
DEFAULT_OAUTH_SCOPES = ("content",)
OAUTH_CALLBACK_PORT = 3000
TOKEN_REFRESH_MARGIN_MS = 5 * 60 * 1000

# Config settings
CMS_PUBLISH_MODES = ("draft", "publish")
DEFAULT_CMS_PUBLISH_MODE = "publish"
MIN_HTTP_TIMEOUT = 3000
DEFAULT_HTTP_TIMEOUT = 15000

# Environment variable config
ENV_PORTAL_ID = "HUBSPOT_PORTAL_ID"
ENV_ACCOUNT_ID = "HUBSPOT_ACCOUNT_ID"
ENV_PERSONAL_ACCESS_KEY = "HUBSPOT_PERSONAL_ACCESS_KEY"
ENV_CLIENT_ID = "HUBSPOT_CLIENT_ID"
ENV_CLIENT_SECRET = "HUBSPOT_CLIENT_SECRET"
ENV_REFRESH_TOKEN = "HUBSPOT_REFRESH_TOKEN"
ENV_API_KEY = "HUBSPOT_API_KEY"
ENV_ENVIRONMENT = "HUBSPOT_ENVIRONMENT"
ENV_MCP_AI_AGENT = "HUBSPOT_MCP_AI_AGENT"

# Builds and deploys
POLLING_DELAY = 2.0  # seconds
BUILD_TERMINAL_STATUSES = ("SUCCESS", "ERROR", "FAILURE", "CANCELED")

# Local serverless runtime
DEFAULT_FUNCTION_PORT = 5432
MAX_RUNTIME = 10000  # ms, warning ceiling
MAX_HANDLER_WAIT = 60000  # ms, hard cap for a handler that is still running
MAX_SECRETS = 50
FUNCTIONS_FOLDER_SUFFIX = ".functions"
SERVERLESS_CONFIG_FILE = "serverless.json"
MOCK_DATA = {
    "HUBSPOT_LIMITS_TIME_REMAINING": 600000,
    "HUBSPOT_LIMITS_EXECUTIONS_REMAINING": 60,
    "HUBSPOT_CONTACT_VID": 123,
    "HUBSPOT_CONTACT_IS_LOGGED_IN": False,
    "HUBSPOT_CONTACT_LIST_MEMBERSHIPS": [],
}
ALLOWED_REQUEST_HEADERS = (
    "accept",
    "accept-encoding",
    "accept-language",
    "cache-control",
    "connection",
    "content-type",
    "cookie",
    "host",
    "origin",
    "pragma",
    "referer",
    "user-agent",
    "x-forwarded-for",
)

# MCP
MCP_SERVER_NAME = "HubSpotDev"
MCP_CLIENTS = ("claude", "cursor", "windsurf", "vscode")

# Templates fetched for `hs create`
GITHUB_CODELOAD_URL = "https://codeload.github.com"
GITHUB_TEMPLATE_REPOS = {
    "website-theme": "HubSpot/cms-theme-boilerplate",
    "react-app": "HubSpot/cms-react-boilerplate",
    "vue-app": "HubSpot/cms-vue-boilerplate",
    "webpack-serverless": "HubSpot/cms-webpack-serverless-boilerplate",
    "app": "HubSpot/crm-card-weather-app",
    "api-sample": "HubSpot/sample-apps-list",
}
