# -*- coding: utf-8 -*-
"""Location: ./mcpsheets/__init__.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0

Google Sheets MCP server.

Exposes Google Sheets operations as MCP tools over the streamable HTTP
transport, with per-client sessions and per-request service-account
credentials.
"""

__author__ = "mcpsheets contributors"
__copyright__ = "Copyright 2025"
__license__ = "Apache 2.0"
__version__ = "1.0.0"
