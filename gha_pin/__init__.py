"""gha-pin: pin GitHub Actions references to full commit SHAs."""

__version__ = "0.1.0"
