"""
hostdeploy Constants

Centralized constants for magic values, defaults, and configuration.
"""

# Application identity. Every run deploys under this one name, so a host
# carries at most one hostdeploy application.
APP_NAME = "myapp"

# Default Branch
DEFAULT_BRANCH = "main"

# Default Port Configuration
DEFAULT_PUBLIC_PORT = 80
MIN_PORT = 1
MAX_PORT = 65535

# Remote Layout (relative to the remote user's home directory)
DEFAULT_DEPLOYMENTS_DIR = "deployments"

# SSH Timeout Configuration
SSH_CONNECTION_TIMEOUT = 10
SSH_DEFAULT_PORT = 22
SSH_CONNECTION_FAILURE_CODE = 255

# Command Timeouts (seconds)
DEFAULT_COMMAND_TIMEOUT = 600
DEFAULT_BUILD_TIMEOUT = 1800
TIMEOUT_EXIT_CODE = 124

# Remote Packages
DEFAULT_PACKAGES = ["docker.io", "docker-compose", "nginx"]
DEFAULT_SERVICES = ["docker", "nginx"]
DEFAULT_COMPOSE_BINARY = "docker-compose"

# Project Descriptors
BUILD_DESCRIPTOR = "Dockerfile"
COMPOSE_DESCRIPTORS = [
    "docker-compose.yml",
    "docker-compose.yaml",
    "compose.yml",
    "compose.yaml",
]

# Nginx Layout
NGINX_RULE_DIRS = [
    "/etc/nginx/sites-available",
    "/etc/nginx/sites-enabled",
    "/etc/nginx/conf.d",
]
NGINX_ACTIVE_RULE_DIR = "/etc/nginx/conf.d"
NGINX_DEFAULT_SITE = "/etc/nginx/sites-enabled/default"
NGINX_BACKUP_DIR = "/var/backups/hostdeploy/nginx"

# Log Configuration
LOG_DATE_FORMAT = "%Y-%m-%d"
LOG_TIME_FORMAT = "%H-%M-%S"
REMOTE_LOG_DATE_FORMAT = "%Y%m%d"
DEFAULT_LOG_DIR = "logs"
LOG_TAIL_LINES = 20

# Configuration Files
DEFAULT_CONFIG_FILE = "hostdeploy.yml"
ENV_PREFIX = "HOSTDEPLOY_"

# Redaction
REDACTED = "****"

# Tool Names (for doctor check)
REQUIRED_TOOLS = [
    "git",
    "ssh",
    "scp",
]
