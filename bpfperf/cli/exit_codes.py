# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
CLI exit codes.

A benchmark run either completes or it doesn't. Every fatal problem,
whether a bad matrix, a program that won't load, or an unexpected return
value, maps to the same failure code so scripts only have to check one thing.
"""

SUCCESS: int = 0
FAILURE: int = 1
