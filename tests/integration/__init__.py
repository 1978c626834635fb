# SPDX-License-Identifier: MIT
"""Cross-component flows driven through a full deployment."""
