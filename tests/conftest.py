"""
Shared fixtures for checkdoc tests.
"""

import pytest

from checkdoc.core.logging import configure_logging
from checkdoc.passes.p10_parse import parse_document
from checkdoc.policy.loader import parse_ruleset


@pytest.fixture(autouse=True, scope="session")
def quiet_logging():
    """Keep test output free of pipeline logs."""
    configure_logging(level="silent", force=True)


@pytest.fixture
def ruleset_from():
    """Build a RuleSet from rule dicts."""
    def _build(*rules, name="test-rules", version="1.0", **settings):
        data = {"name": name, "version": version, "rules": list(rules)}
        if settings:
            data["settings"] = settings
        return parse_ruleset(data)
    return _build


@pytest.fixture
def doc():
    """Parse a document from text."""
    def _parse(text, source="doc.md"):
        return parse_document(text, source=source)
    return _parse


@pytest.fixture
def module_text():
    """A small e-learning module in Markdown."""
    return (
        "# Safe Lifting\n"
        "\n"
        "Target audience: warehouse staff\n"
        "\n"
        "## Objectives\n"
        "\n"
        "- Demonstrate a safe lift\n"
        "- Understand load limits\n"
        "\n"
        "## Content\n"
        "\n"
        "We utilize a three-step method. Bend the knees.\n"
        "\n"
        "## Assessment\n"
        "\n"
        "### Question 1\n"
        "\n"
        "- Bend the knees\n"
        "- Bend the back\n"
        "- Twist while lifting\n"
    )
