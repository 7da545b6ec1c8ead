"""Remote competency API configuration and resource descriptors."""

import os
from typing import Dict, List, Optional

from pydantic import BaseModel

from competency_kernel.models.view import ViewConfig

DEFAULT_API_BASE = "http://localhost:5000/api"


class ClientConfig(BaseModel):
    """Where the remote competency API lives and how long to wait for it."""

    base_url: str = DEFAULT_API_BASE
    timeout_seconds: float = 30.0
    headers: Dict[str, str] = {"Content-Type": "application/json"}

    @classmethod
    def from_env(cls) -> "ClientConfig":
        """Build a config from COMPETENCY_API_BASE / COMPETENCY_API_TIMEOUT."""
        return cls(
            base_url=os.getenv("COMPETENCY_API_BASE", DEFAULT_API_BASE),
            timeout_seconds=float(os.getenv("COMPETENCY_API_TIMEOUT", "30")),
        )


class ResourceSpec(BaseModel):
    """
    A remote collection the view service knows how to fetch and present.

    `envelope` names the key the API wraps the list in
    (e.g. {"questions": [...]}); None means the body is the list itself.
    A `{scope}` placeholder in `path` makes the resource per-scope, e.g.
    one IDP list per employee, cached under (name, scope).
    """

    name: str
    path: str
    envelope: Optional[str] = None
    params: Dict[str, str] = {}
    view: ViewConfig = ViewConfig()
    stats_fields: List[str] = []
    active_field: Optional[str] = None
    total_fields: Dict[str, List[str]] = {}     # label -> field aliases to sum

    @property
    def is_scoped(self) -> bool:
        return "{scope}" in self.path
