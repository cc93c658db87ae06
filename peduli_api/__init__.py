# SPDX-License-Identifier: Apache-2.0

"""
Peduli Kucing API: stray cat rescue reports, adoptions, donations and the
chat that links them.
"""

__version__ = "1.0.0"
