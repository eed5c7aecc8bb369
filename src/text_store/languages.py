"""
Language code registry.

A closed enumeration of the ISO 639-1 codes a localized entry may use.
Codes are stored upper-case ("EN", "DE", ...); parsing is case-insensitive.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Union

from .errors import ValidationError

logger = logging.getLogger(__name__)

# Display names per code
LANGUAGE_METADATA: Dict[str, Dict[str, Any]] = {
    "AR": {"name": "Arabic", "name_native": "العربية", "rtl": True},
    "CS": {"name": "Czech", "name_native": "Čeština", "rtl": False},
    "DA": {"name": "Danish", "name_native": "Dansk", "rtl": False},
    "DE": {"name": "German", "name_native": "Deutsch", "rtl": False},
    "EL": {"name": "Greek", "name_native": "Ελληνικά", "rtl": False},
    "EN": {"name": "English", "name_native": "English", "rtl": False},
    "ES": {"name": "Spanish", "name_native": "Español", "rtl": False},
    "FA": {"name": "Persian/Farsi", "name_native": "فارسی", "rtl": True},
    "FI": {"name": "Finnish", "name_native": "Suomi", "rtl": False},
    "FR": {"name": "French", "name_native": "Français", "rtl": False},
    "HE": {"name": "Hebrew", "name_native": "עברית", "rtl": True},
    "HI": {"name": "Hindi", "name_native": "हिन्दी", "rtl": False},
    "HU": {"name": "Hungarian", "name_native": "Magyar", "rtl": False},
    "IT": {"name": "Italian", "name_native": "Italiano", "rtl": False},
    "JA": {"name": "Japanese", "name_native": "日本語", "rtl": False},
    "KO": {"name": "Korean", "name_native": "한국어", "rtl": False},
    "NL": {"name": "Dutch", "name_native": "Nederlands", "rtl": False},
    "NO": {"name": "Norwegian", "name_native": "Norsk", "rtl": False},
    "PL": {"name": "Polish", "name_native": "Polski", "rtl": False},
    "PT": {"name": "Portuguese", "name_native": "Português", "rtl": False},
    "RM": {"name": "Romansh", "name_native": "Rumantsch", "rtl": False},
    "RU": {"name": "Russian", "name_native": "Русский", "rtl": False},
    "SV": {"name": "Swedish", "name_native": "Svenska", "rtl": False},
    "TR": {"name": "Turkish", "name_native": "Türkçe", "rtl": False},
    "UK": {"name": "Ukrainian", "name_native": "Українська", "rtl": False},
    "ZH": {"name": "Chinese", "name_native": "中文", "rtl": False},
}


class LanguageCode(str, Enum):
    """Valid language identifiers for localized entries."""

    AR = "AR"
    CS = "CS"
    DA = "DA"
    DE = "DE"
    EL = "EL"
    EN = "EN"
    ES = "ES"
    FA = "FA"
    FI = "FI"
    FR = "FR"
    HE = "HE"
    HI = "HI"
    HU = "HU"
    IT = "IT"
    JA = "JA"
    KO = "KO"
    NL = "NL"
    NO = "NO"
    PL = "PL"
    PT = "PT"
    RM = "RM"
    RU = "RU"
    SV = "SV"
    TR = "TR"
    UK = "UK"
    ZH = "ZH"

    @classmethod
    def parse(cls, value: Union[str, "LanguageCode"]) -> "LanguageCode":
        """
        Resolve a language code from a member or a case-insensitive string.

        Raises:
            ValidationError: If the value is not one of the registry's codes.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                pass
        raise ValidationError(
            f"Unknown language code <{value}>",
            context={"language_code": value, "allowed": supported_codes()},
        )

    @property
    def display_name(self) -> str:
        return LANGUAGE_METADATA[self.value]["name"]

    @property
    def native_name(self) -> str:
        return LANGUAGE_METADATA[self.value]["name_native"]

    @property
    def is_rtl(self) -> bool:
        """True for scripts written right to left."""
        return LANGUAGE_METADATA[self.value]["rtl"]

    def __str__(self) -> str:
        return self.value


def supported_codes() -> List[str]:
    """Return all registered codes in declaration order."""
    return [code.value for code in LanguageCode]


def is_supported(code: str) -> bool:
    """Check whether a string names a registered language (case-insensitive)."""
    if not isinstance(code, str):
        return False
    return code.strip().upper() in LanguageCode.__members__


def language_name(code: Union[str, LanguageCode]) -> str:
    """Return the English display name of a code."""
    return LanguageCode.parse(code).display_name
