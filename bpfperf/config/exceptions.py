# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
Custom exceptions for the test matrix configuration.

We keep these separate so that the CLI and the runner can catch
config-specific failures without importing the loader or pydantic.
"""

from bpfperf.errors import BpfPerfError


class ConfigError(BpfPerfError):
    """Base for all configuration errors."""


class ConfigLoadError(ConfigError):
    """Raised when a matrix file cannot be read from disk or parsed as YAML."""


class ConfigValidationError(ConfigError):
    """
    Raised when a matrix file parses fine but is not a usable test matrix.
    This covers missing required fields, type mismatches, out-of-range values,
    and bad name filters given on the command line.
    """


class AssignmentError(ConfigValidationError):
    """Raised when a program_cpu_assignment directive is malformed or out of range."""
