"""waf-temp-access CLI (grant / revoke / run). Entry point: python -m tools.access_cli"""
