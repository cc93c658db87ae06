# SPDX-License-Identifier: Apache-2.0

"""
Domain logic package for the Peduli Kucing platform.

This package contains pure business logic functions with no side effects:
status graphs, transition authorization, and conversation context selection.
"""
