# SPDX-License-Identifier: MIT
"""Unit tests: one module per component, each on a fresh Runtime."""
