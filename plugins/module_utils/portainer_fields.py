"""
Portainer API Field Reference
Generated from API responses and verified through testing.

Use this as the source of truth for field names.
"""


class PortainerFields:
    """Verified field names from Portainer API responses"""

    # Authentication
    AUTH_USERNAME = "username"
    AUTH_PASSWORD = "password"
    AUTH_JWT = "jwt"

    # Endpoints
    ENDPOINT_ID_QUERY = "endpointId"

    # Stacks
    STACK_ID = "Id"
    STACK_ID_QUERY = "id"
    STACK_NAME = "Name"
    STACK_ENDPOINT_ID = "EndpointId"
    STACK_ENV = "Env"
    STACK_STATUS = "Status"
    STACK_TYPE_QUERY = "type"
    STACK_METHOD_QUERY = "method"

    # Stack request bodies
    STACK_NAME_BODY = "name"
    STACK_ENV_BODY = "env"
    STACK_FILE_CONTENT_BODY = "stackFileContent"
    STACK_PULL_IMAGE_BODY = "pullImage"

    # Stack environment entries
    ENV_NAME = "name"
    ENV_VALUE = "value"

    # Networks
    NETWORK_CONTAINER = "container"
    NETWORK_FORCE = "force"

    # Image / volume pruning
    PRUNE_FILTERS_QUERY = "filters"
    PRUNE_IMAGES_DELETED = "ImagesDeleted"
    PRUNE_IMAGE_DELETED = "Deleted"
    PRUNE_VOLUMES_DELETED = "VolumesDeleted"
