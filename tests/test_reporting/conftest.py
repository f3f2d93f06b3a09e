"""
Pytest fixtures for testing the reporting system.
"""

import pytest

from cpas.reporting.generator import ReportGenerator


@pytest.fixture
def report_generator():
    """Create a report generator with the packaged template."""
    return ReportGenerator({"company_name": "Acme Builders"})
