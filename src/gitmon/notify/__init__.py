"""Report rendering and delivery."""

from gitmon.notify.mailer import Mailer
from gitmon.notify.render import ReportRenderer, commit_url

__all__ = ["Mailer", "ReportRenderer", "commit_url"]
