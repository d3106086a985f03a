# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Release pipeline for hippo.

Resolves the release identifier from the trigger, obtains one executable per
platform, packages each into a platform-appropriate archive, publishes the
archives into a shared artifact group, and writes one checksum manifest over
all of them once every platform job has succeeded.

Compiling hippo itself is someone else's job; this package only cares about
naming, archiving, publishing and checksumming.
"""
