"""Temporary network-ingress access for CI runners (WAF IPSet / security group)."""

__version__ = "0.1.0"
