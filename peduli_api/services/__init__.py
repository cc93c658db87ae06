# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Services package - Storage-backed operations and external integrations.

Modules are imported directly (`from peduli_api.services.case_store import
CaseStore`); the error handler imports `services.hal`, so this package does
not import its modules eagerly.
"""
