"""
Test Plan Manager: wizard-driven test plan authoring with Jira and TestMo enrichment.
"""
__version__ = "0.1.0"
