# -*- coding: utf-8 -*-
"""Location: ./mcpsheets/utils/orjson_response.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

JSON response class backed by orjson.

Used for every JSON body the server produces: JSON-RPC replies and error
envelopes on ``/mcp``, authentication failures and the health check.
"""

# Standard
from typing import Any

# Third-Party
from fastapi.responses import JSONResponse
import orjson


class ORJSONResponse(JSONResponse):
    """``JSONResponse`` that serialises with orjson.

    Example:
        >>> response = ORJSONResponse(content={"jsonrpc": "2.0", "id": 1, "result": {}})
        >>> response.media_type
        'application/json'
        >>> response.body
        b'{"jsonrpc":"2.0","id":1,"result":{}}'
    """

    media_type = "application/json"

    def render(self, content: Any) -> bytes:
        """Render content to JSON bytes.

        Args:
            content: JSON-serialisable content

        Returns:
            bytes: Compact JSON

        Raises:
            orjson.JSONEncodeError: If content cannot be serialized to JSON.
        """
        return orjson.dumps(content, option=orjson.OPT_NON_STR_KEYS)
