from __future__ import annotations

import base64
import json
from pathlib import Path
from typing import Dict, Protocol, Union
from urllib.parse import urlsplit

import requests

from .errors import BackendError, ConfigurationError

TreeNode = Dict[str, Union[str, "TreeNode"]]

CONSUL_DEFAULT_PORT = 8500
REQUEST_TIMEOUT_S = 10.0


class ConfigBackend(Protocol):
    def put_string(self, key: str, value: str) -> None: ...

    def get_string(self, key: str) -> str | None: ...

    def get_recursive(self, prefix: str) -> TreeNode: ...


def split_key(key: str) -> list[str]:
    return [part for part in key.split("/") if part]


def flatten_tree(node: TreeNode | str, prefix: str = "") -> dict[str, str]:
    """Flatten a nested tree into ``{"/relative/path": value}``."""
    if not isinstance(node, dict):
        return {prefix: node}
    flattened: dict[str, str] = {}
    for name, child in node.items():
        flattened.update(flatten_tree(child, f"{prefix}/{name}"))
    return flattened


def insert_leaf(tree: TreeNode, parts: list[str], value: str) -> None:
    node = tree
    for part in parts[:-1]:
        child = node.setdefault(part, {})
        if not isinstance(child, dict):
            raise BackendError(f"key '{'/'.join(parts)}' is nested under a value")
        node = child
    node[parts[-1]] = value


def _to_string(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class ConsulBackend:
    """Consul KV store reached through its HTTP API."""

    def __init__(
        self,
        host: str,
        port: int = CONSUL_DEFAULT_PORT,
        root: str = "",
        session: requests.Session | None = None,
        timeout_s: float = REQUEST_TIMEOUT_S,
    ) -> None:
        self._base_url = f"http://{host}:{port}/v1/kv"
        self._root = split_key(root)
        self._session = session or requests.Session()
        self._timeout_s = timeout_s

    def _full_key(self, key: str) -> str:
        return "/".join(self._root + split_key(key))

    def put_string(self, key: str, value: str) -> None:
        url = f"{self._base_url}/{self._full_key(key)}"
        try:
            response = self._session.put(url, data=value.encode("utf-8"), timeout=self._timeout_s)
            response.raise_for_status()
            accepted = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise BackendError(f"Failed to put key '{key}': {exc}") from exc
        if accepted is not True:
            raise BackendError(f"Consul rejected key '{key}'")

    def get_string(self, key: str) -> str | None:
        url = f"{self._base_url}/{self._full_key(key)}"
        try:
            response = self._session.get(url, params={"raw": ""}, timeout=self._timeout_s)
            if response.status_code == 404:
                return None
            response.raise_for_status()
        except requests.RequestException as exc:
            raise BackendError(f"Failed to get key '{key}': {exc}") from exc
        return response.content.decode("utf-8")

    def get_recursive(self, prefix: str) -> TreeNode:
        key_prefix = self._full_key(prefix)
        url = f"{self._base_url}/{key_prefix}/" if key_prefix else f"{self._base_url}/"
        try:
            response = self._session.get(url, params={"recurse": ""}, timeout=self._timeout_s)
            if response.status_code == 404:
                return {}
            response.raise_for_status()
            entries = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise BackendError(f"Failed to get recursive '{prefix}': {exc}") from exc

        tree: TreeNode = {}
        for entry in entries:
            relative = split_key(entry["Key"][len(key_prefix):])
            # Folder placeholders carry no value.
            if not relative or entry.get("Value") is None:
                continue
            value = base64.b64decode(entry["Value"]).decode("utf-8")
            insert_leaf(tree, relative, value)
        return tree


class JsonFileBackend:
    """Nested JSON object file, used for argument trees and local runs."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    def _load(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise BackendError(f"Failed to read {self._path}: {exc}") from exc
        if not isinstance(data, dict):
            raise BackendError(f"{self._path} does not contain a JSON object")
        return data

    def _lookup(self, key: str) -> object | None:
        node: object = self._load()
        for part in split_key(key):
            if not isinstance(node, dict) or part not in node:
                return None
            node = node[part]
        return node

    def put_string(self, key: str, value: str) -> None:
        parts = split_key(key)
        if not parts:
            raise BackendError("cannot put a value at the root key")
        data = self._load()
        insert_leaf(data, parts, value)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        except OSError as exc:
            raise BackendError(f"Failed to write {self._path}: {exc}") from exc

    def get_string(self, key: str) -> str | None:
        node = self._lookup(key)
        if node is None or isinstance(node, dict):
            return None
        return _to_string(node)

    def get_recursive(self, prefix: str) -> TreeNode:
        node = self._lookup(prefix)
        if not isinstance(node, dict):
            return {}
        return _stringify(node)


def _stringify(node: dict) -> TreeNode:
    return {
        name: _stringify(child) if isinstance(child, dict) else _to_string(child)
        for name, child in node.items()
    }


def create_backend(uri: str) -> ConfigBackend:
    parts = urlsplit(uri)
    if parts.scheme == "consul":
        if not parts.hostname:
            raise ConfigurationError(f"Consul URI '{uri}' has no host")
        return ConsulBackend(
            host=parts.hostname,
            port=parts.port or CONSUL_DEFAULT_PORT,
            root=parts.path,
        )
    if parts.scheme in {"json", "file"}:
        path = f"{parts.netloc}{parts.path}"
        if not path:
            raise ConfigurationError(f"File URI '{uri}' has no path")
        return JsonFileBackend(Path(path))
    raise ConfigurationError(
        f"Unsupported backend URI scheme '{parts.scheme}' in '{uri}'"
    )


__all__ = [
    "ConfigBackend",
    "ConsulBackend",
    "JsonFileBackend",
    "TreeNode",
    "create_backend",
    "flatten_tree",
]
