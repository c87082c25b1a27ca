from __future__ import annotations

import copy

from ansible.module_utils.basic import AnsibleModule

from .portainer_client import PortainerClient
from .portainer_crud import PortainerCRUD


class IdempotencyManager:

    def __init__(self, module: PortainerModule):
        self.module = module

    def build_diff(
        self,
        before_data: dict | None = None,
        after_data: dict | None = None,
        skip_fields: list | None = None,
        removed: bool = False,
    ):
        """Generate unified diff format. A removed resource diffs against an empty after."""
        before = self._sanitize_for_diff(before_data, skip_fields=skip_fields)

        if removed:
            return {"before": before, "after": {}}

        _after_data = copy.deepcopy(before_data or {})
        _after_data.update(after_data or {})

        after = self._sanitize_for_diff(_after_data, skip_fields=skip_fields)

        return {
            "before": before,
            "after": after,
        }

    def _sanitize_for_diff(
        self, data: dict | None = None, skip_fields: list[str] | None = None
    ) -> dict:

        if not data:
            return {}

        sanitized = copy.deepcopy(data)

        for k in skip_fields or []:
            sanitized.pop(k, None)

        return sanitized


class PortainerModule(AnsibleModule):
    def __init__(self, *args, **kwargs):

        super(PortainerModule, self).__init__(*args, **kwargs)

        self.messages: list[str] = []

        self.client = PortainerClient(self)
        self.crud = PortainerCRUD(self)
        self.idempotency = IdempotencyManager(self)

    @classmethod
    def generate_argspec(cls, **kwargs):
        spec = PortainerClient.ARGSPEC.copy()
        spec.update(**kwargs)

        return spec

    def run_checks(self):
        if not self.check_mode:
            self.client.ping()

    def log_progress(self, msg: str) -> None:
        """Record a human readable progress message, returned to the caller as 'messages'."""
        self.messages.append(msg)
        self.log(msg)

    def read_text_file(self, filepath: str, description: str = "file") -> str:
        """Read a local file that must hold UTF-8 text; fails the module otherwise."""
        try:
            with open(filepath, "rb") as f:
                content = f.read()
        except FileNotFoundError:
            self.fail_json(msg=f"{description.capitalize()} not found: {filepath}")
        except PermissionError:
            self.fail_json(msg=f"Permission denied reading {description}: {filepath}")
        except IOError as e:
            self.fail_json(msg=f"Failed to read {description} {filepath}: {str(e)}")

        if not content:
            self.fail_json(msg=f"{description.capitalize()} is empty: {filepath}")

        self.validate_text_content(content, description, filepath=filepath)

        return content.decode("utf-8")

    def validate_text_content(
        self,
        content: bytes,
        description: str | None = None,
        filepath: str | None = None,
    ) -> None:
        """
        Validate that content is text, not binary.

        Calls fail_json on invalid UTF-8 or embedded null bytes.
        """
        try:
            content.decode("utf-8")
        except UnicodeDecodeError:
            self.fail_json(
                msg=self._build_error_message("invalid UTF-8 encoding", description, filepath)
            )

        if b"\x00" in content:
            self.fail_json(
                msg=self._build_error_message("null bytes detected", description, filepath)
            )

    def _build_error_message(self, reason, description, filepath):
        """Build a consistent error message"""
        parts = [description.capitalize() if description else "Content"]

        parts.append(f"contains binary data ({reason})")

        if filepath:
            parts.append(f": {filepath}")

        return " ".join(parts)
