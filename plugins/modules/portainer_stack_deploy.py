#!/usr/bin/python
# portainer_stack_deploy.py - A module to deploy and tear down Portainer compose stacks.
# Author: Igor Moraru (@bgtor)
# License: GPL-3.0-or-later
# GNU General Public License v3.0+ (see COPYING or https://www.gnu.org/licenses/gpl-3.0.txt)

from __future__ import absolute_import, division, print_function, annotations

__metaclass__ = type

DOCUMENTATION = r"""
---
module: portainer_stack_deploy
short_description: Deploy or remove a compose stack on a Portainer environment
description:
    - Creates a standalone compose stack, or updates it when a stack with the same name exists.
    - Updates keep the stack's current environment variables and override or append the ones given in O(env).
    - Updates always ask Portainer to pull the images again.
    - After creation the reverse proxy container is connected to the C(<name>_network) network.
    - Removal disconnects the reverse proxy, deletes the stack and prunes unused images and volumes.
    - Network wiring and pruning are best effort; their failures are reported as warnings.
version_added: "1.1.0"
author: Igor Moraru (@bgtor)
options:
    name:
        description: Name of the stack. Used to find an existing stack on the environment.
        type: str
        required: true
    endpoint_id:
        description: Id of the Portainer environment the stack is deployed to.
        type: int
        required: true
    state:
        description:
            - V(present) creates the stack or updates the existing one.
            - V(absent) deletes the stack. Nothing is done when it does not exist.
        type: str
        choices: ['present', 'absent']
        default: present
    file:
        description:
            - Path to the compose file on the control node.
            - File must be valid UTF-8 text.
            - Mutually exclusive with O(content).
        type: path
    content:
        description:
            - Compose definition given inline.
            - Mutually exclusive with O(file).
        type: str
    env:
        description:
            - Environment variables for the stack, as a mapping of name to value.
            - Values are sent as strings.
        type: dict
        default: {}
    reverse_proxy_container:
        description:
            - Container attached to C(<name>_network) after creation and detached before removal.
            - Set to an empty string to skip the network step.
        type: str
        default: traefik
    prune_unused:
        description: Prune unused images and volumes on the environment after a stack is deleted.
        type: bool
        default: true
    create_method:
        description:
            - V(standalone) creates stacks with C(POST /stacks/create/standalone/string).
            - V(legacy) uses C(POST /stacks?type=2&method=string) for Portainer releases older than 2.19.
        type: str
        choices: ['standalone', 'legacy']
        default: standalone
extends_documentation_fragment:
    - bgtor.portainer.portainer_client
notes:
    - Supports check mode; only read requests are sent.
    - Supports diff mode for the stack environment.
"""

EXAMPLES = r"""
- name: Deploy the application stack
  portainer_stack_deploy:
    portainer_url: https://portainer.example.com
    portainer_username: deploy
    portainer_password: "{{ portainer_password }}"
    endpoint_id: 2
    name: webapp
    file: docker-compose.yml
    env:
      IMAGE_TAG: "{{ lookup('env', 'GITHUB_SHA') }}"
      APP_ENV: production

- name: Tear down a review environment
  portainer_stack_deploy:
    portainer_url: https://portainer.example.com
    portainer_token: "{{ portainer_api_token }}"
    endpoint_id: 2
    name: "webapp-pr-{{ pr_number }}"
    state: absent
"""

RETURN = r"""
msg:
    description: Human readable message
    returned: always
    type: str
    sample: "Stack created."
stack:
    description: Stack as returned by Portainer
    returned: when the stack exists or was created
    type: dict
    sample: {
        "Id": 12,
        "Name": "webapp",
        "EndpointId": 2,
        "Env": [{"name": "APP_ENV", "value": "production"}],
    }
messages:
    description: Progress messages of the operation, in order
    returned: always
    type: list
    elements: str
    sample: ["Creating stack webapp...", "Successfully created stack webapp with id 12"]
"""

from typing import Any

from ..module_utils.portainer_module import PortainerModule
from ..module_utils.portainer_crud import CreateMethod
from ..module_utils.portainer_stack_manager import Stack, StackManagerClient, merge_env


def _to_env_value(value: Any) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)


class PortainerStackDeployManager:
    def __init__(self, module: PortainerModule, results: dict):
        self.module = module
        self.idempotency = module.idempotency

        self.results = results
        self.check_mode = module.check_mode
        self.diff_mode = module._diff

        self.name = module.params["name"]
        self.state = module.params["state"]
        self.file = module.params["file"]
        self.content = module.params["content"]
        self.env = {k: _to_env_value(v) for k, v in (module.params["env"] or {}).items()}

        self.stacks = StackManagerClient(
            module,
            endpoint_id=module.params["endpoint_id"],
            reverse_proxy=module.params["reverse_proxy_container"] or None,
            prune=module.params["prune_unused"],
            create_method=module.params["create_method"],
        )

        self.stack: Stack | None = None
        self.old_stack: Stack | None = None

    def __call__(self) -> None:
        # API key requests are authenticated already
        if not self.module.client.authenticated:
            self.stacks.authenticate(
                self.module.params["portainer_username"],
                self.module.params["portainer_password"],
            )

        self.old_stack = self.stacks.find_stack(self.name)

        states_mapping = {
            "present": self.ensure_present,
            "absent": self.ensure_absent,
        }

        state_function = states_mapping.get(self.state)

        if state_function is None:
            self.module.fail_json(
                msg=f"Internal error: state '{self.state}' is not mapped. "
                f"This is a bug in the module - please report it."
            )

        state_function()

        if self.stack is not None:
            self.results["stack"] = self.stack.to_dict()

        if self.diff_mode:
            self.results["diff"] = self.idempotency.build_diff(
                before_data=self.old_stack.to_dict() if self.old_stack else None,
                after_data=self.results.get("stack"),
                removed=self.state == "absent",
            )

    def ensure_present(self) -> None:
        content = self._get_stack_content()

        if self.old_stack:
            if not self.check_mode:
                self.stack = self.stacks.update_stack(self.old_stack, content, self.env)
            else:
                self.stack = Stack.from_dict(self.old_stack.to_dict())
                self.stack.env = merge_env(self.old_stack.env, self.env)

            self.results["changed"] = True
            self.results["msg"] = "Stack updated."

        else:
            if not self.check_mode:
                self.stack = self.stacks.create_stack(self.name, content, self.env)
            else:
                self.stack = Stack(name=self.name, env=merge_env([], self.env))

            self.results["changed"] = True
            self.results["msg"] = "Stack created."

    def ensure_absent(self) -> None:
        if self.old_stack:
            if not self.check_mode:
                self.stacks.delete_stack(self.name, stack=self.old_stack)

            self.results["changed"] = True
            self.results["msg"] = "Stack deleted"
        else:
            self.results["msg"] = "Stack does not exist"

    def _get_stack_content(self) -> str:
        if self.content is not None:
            self.module.validate_text_content(self.content.encode("utf-8"), "stack content")
            return self.content

        return self.module.read_text_file(self.file, "stack file")


def main():
    argument_spec = PortainerModule.generate_argspec(
        name=dict(type="str", required=True),
        endpoint_id=dict(type="int", required=True),
        state=dict(type="str", default="present", choices=["present", "absent"]),
        file=dict(type="path"),
        content=dict(type="str"),
        env=dict(type="dict", default={}),
        reverse_proxy_container=dict(type="str", default="traefik"),
        prune_unused=dict(type="bool", default=True),
        create_method=dict(
            type="str", default=CreateMethod.STANDALONE, choices=CreateMethod.choices
        ),
    )

    module = PortainerModule(
        argument_spec=argument_spec,
        supports_check_mode=True,
        mutually_exclusive=[("file", "content")],
        required_one_of=[("portainer_token", "portainer_username")],
        required_together=[("portainer_username", "portainer_password")],
        required_if=[("state", "present", ("file", "content"), True)],
    )

    module.run_checks()

    results = dict(changed=False, messages=module.messages)

    try:
        PortainerStackDeployManager(module, results)()
        module.exit_json(**results)

    except module.client.exc.PortainerApiError as e:
        module.fail_json(
            msg=f"API request failed: {e}",
            status=e.status,
            body=e.body,
            url=e.url,
            method=e.method,
            messages=module.messages,
        )

    except Exception as e:
        module.fail_json(msg=f"Error managing stacks: {str(e)}", messages=module.messages)


if __name__ == "__main__":
    main()
