"""awsnuke - remove every resource from an AWS account, guided by filters."""

__version__ = "0.4.0"
