# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
hippo-release — packaging and checksum pipeline for hippo release artifacts.
"""

__version__ = "0.1.0"
