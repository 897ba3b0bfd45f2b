"""gh-reports: release, settings, alert and pull-request reports for a GitHub org."""

__version__ = "0.1.0"
