# -*- coding: utf-8 -*-
"""Location: ./mcpsheets/services/__init__.py
Copyright 2025
SPDX-License-Identifier: Apache-2.0
"""
