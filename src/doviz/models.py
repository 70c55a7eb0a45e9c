"""
Alembic model import hook.

Importing this module ensures all SQLAlchemy models are registered on Base.metadata.
"""

from __future__ import annotations

# Import User first - other models have relationships to User
from doviz.modules.identity.models import User  # noqa: F401

from doviz.modules.conversions.models import ConversionHistory  # noqa: F401
from doviz.modules.currencies.models import Currency, RateSnapshot  # noqa: F401
from doviz.modules.messages.models import Message  # noqa: F401
