"""
checkdoc — Rule-Based Document Compliance Checker

Checks plain-text/Markdown documents against declarative rule sets
and reports compliance per rule, with locations and fix suggestions.

Rules are data. The checker only evaluates them.
"""

__version__ = "0.1.0"
__report_version__ = "1.0"
