# -*- coding: utf-8 -*-
"""Location: ./mcpsheets/utils/request_context.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Per-request context store.

A ``RequestContext`` is created by the authentication middleware for each
inbound HTTP request, attached to ``request.state`` and then handed explicitly
down the call chain (router -> session transport -> tool registry -> tool
handler). Nothing about it is stored globally, so two concurrent requests on
the same session never see each other's credentials.

Examples:
    >>> ctx = RequestContext()
    >>> ctx.set("request_id", "abc")
    >>> ctx.get("request_id")
    'abc'
    >>> ctx.get("missing", "default")
    'default'
    >>> "request_id" in ctx
    True
"""

# Standard
from typing import Any, Dict, Iterator, Optional, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover
    # First-Party
    from mcpsheets.services.google_auth_service import ServiceAccountCredentials

CREDENTIALS_KEY = "google_service_account_credentials"


class RequestContext:
    """Key/value store scoped to a single inbound request."""

    __slots__ = ("_values",)

    def __init__(self, credentials: Optional["ServiceAccountCredentials"] = None, **values: Any):
        """Create a context, optionally seeded with credentials and extra values.

        Args:
            credentials: Service account credentials decoded from the request
            **values: Additional initial key/value pairs
        """
        self._values: Dict[str, Any] = dict(values)
        if credentials is not None:
            self._values[CREDENTIALS_KEY] = credentials

    def set(self, key: str, value: Any) -> None:
        """Store a value under ``key``.

        Args:
            key: Context key
            value: Value to store
        """
        self._values[key] = value

    def get(self, key: str, default: Any = None) -> Any:
        """Return the value stored under ``key``.

        Args:
            key: Context key
            default: Returned when the key is absent

        Returns:
            Any: Stored value or ``default``
        """
        return self._values.get(key, default)

    @property
    def credentials(self) -> Optional["ServiceAccountCredentials"]:
        """Service account credentials of the current request, if any.

        Returns:
            Optional[ServiceAccountCredentials]: Credentials or None

        Examples:
            >>> RequestContext().credentials is None
            True
        """
        return self._values.get(CREDENTIALS_KEY)

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __repr__(self) -> str:
        # Values may include secrets; only keys are shown.
        return f"RequestContext(keys={sorted(self._values)})"
