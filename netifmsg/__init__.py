"""Encode rtnetlink address requests and decode rtnetlink and BSD sysctl interface messages."""

__version__ = "0.1.0"

__all__ = ["netlink", "nlrequest", "nlresponse", "sysctl"]