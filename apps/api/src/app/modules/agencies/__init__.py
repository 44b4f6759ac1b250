"""
Agencies module - Agency tenant configuration.
"""

from app.modules.agencies.models import SUPPORTED_TIMEZONES, Agency, AgencySettings
from app.modules.agencies.repository import AgencyRepository

__all__ = ["Agency", "AgencySettings", "AgencyRepository", "SUPPORTED_TIMEZONES"]
