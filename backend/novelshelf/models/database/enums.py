"""Centralized enum definitions for database models.

All status and type enums should be defined here for consistency.
"""

from enum import Enum


class VariantType(str, Enum):
    """Kind of text a chapter variant holds."""

    RAW = "RAW"            # Source text as imported
    OFFICIAL = "OFFICIAL"  # Licensed translation
    MTL = "MTL"            # Machine translation
    AI = "AI"              # LLM translation
    HUMAN = "HUMAN"        # Fan/human translation
