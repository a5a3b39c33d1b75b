"""grantgate: OAuth2 token exchange engine."""

__version__ = "0.1.0"
