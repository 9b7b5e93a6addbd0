# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Root of the bpfperf exception tree.

Every subsystem defines its own exceptions module, but they all derive from
BpfPerfError so the CLI can turn any expected failure into exit code 1 with
a single except clause.
"""


class BpfPerfError(Exception):
    """Base for every failure bpfperf raises on purpose."""
