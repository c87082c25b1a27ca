class ModuleDocFragment(object):

    DOCUMENTATION = r"""
    options:
        portainer_url:
            description: URL of the Portainer instance
            required: true
            type: str
        portainer_username:
            description:
                - Portainer user to log in with. The session token is used for every later request.
                - Required together with O(portainer_password) when O(portainer_token) is not set.
            type: str
        portainer_password:
            description: Password of O(portainer_username)
            type: str
        portainer_token:
            description:
                - Portainer API access token, sent as C(X-API-Key).
                - Takes precedence over O(portainer_username) and O(portainer_password).
            type: str
        timeout:
            description: Timeout for API requests
            type: int
            default: 30
        validate_certs:
            description: Validate SSL certificates
            type: bool
            default: true
    """
