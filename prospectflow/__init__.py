"""ProspectFlow — local business discovery, prospect scoring and website audits."""

__version__ = "1.0.0"
