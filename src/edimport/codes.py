"""Closed code sets used by EDI records."""

from enum import Enum

from edimport.exceptions import (
    InvalidCategory,
    InvalidLanguage,
    InvalidOperation,
    InvalidOwnership,
)


class Category(str, Enum):
    """Product line partition. Value is the storage slug, `edi_code` the wire letter."""

    UNSET = ("unset", "")
    WATER_AND_HEATING = ("lv", "L")
    VENTILATION = ("iv", "I")
    ELECTRICITY = ("sa", "S")
    INDUSTRIAL = ("te", "P")
    REFRIGERATION = ("ky", "K")

    def __new__(cls, slug: str, edi_code: str) -> "Category":
        obj = str.__new__(cls, slug)
        obj._value_ = slug
        obj.edi_code = edi_code
        return obj

    @classmethod
    def from_edi_code(cls, value: str) -> "Category":
        for category in cls:
            if category.edi_code and category.edi_code == value:
                return category
        raise InvalidCategory(f"Invalid EDI category '{value}' provided")

    @classmethod
    def partitions(cls) -> list["Category"]:
        """All categories that own a storage partition."""
        return [c for c in cls if c is not cls.UNSET]


class Language(str, Enum):
    FIN = ("fin", 1)
    SWE = ("swe", 2)
    ENG = ("eng", 3)
    NOR = ("nor", 4)

    def __new__(cls, name: str, index: int) -> "Language":
        obj = str.__new__(cls, name)
        obj._value_ = name
        obj.db_index = index
        return obj

    @classmethod
    def from_name(cls, value: str) -> "Language":
        lowered = value.strip().lower()
        for language in cls:
            if language.value == lowered:
                return language
        names = ", ".join(language.value for language in cls)
        raise InvalidLanguage(
            f"Invalid language name '{value}' provided. Expected one of: [{names}]"
        )


class Operation(str, Enum):
    """Change annotation of a product row. Value is the stored name."""

    ADDED = ("add", "1")
    MODIFIED = ("mod", "2")
    DESTROYED = ("del", "3")
    EMPTY = ("-", "")

    def __new__(cls, name: str, edi_code: str) -> "Operation":
        obj = str.__new__(cls, name)
        obj._value_ = name
        obj.edi_code = edi_code
        return obj

    @classmethod
    def from_edi_code(cls, value: str) -> "Operation":
        for operation in cls:
            if operation.edi_code and operation.edi_code == value:
                return operation
        raise InvalidOperation(
            f"Operation has to be number between 1 and 3. Found '{value}'"
        )


class Ownership(str, Enum):
    """Role of a trading party in a file header."""

    SELLER = ("SE", "sellers")
    BUYER = ("BY", "buyers")
    SHARED = ("", "")

    def __new__(cls, token: str, dir_name: str) -> "Ownership":
        obj = str.__new__(cls, token)
        obj._value_ = token
        obj._dir_name = dir_name
        return obj

    @classmethod
    def from_token(cls, value: str) -> "Ownership":
        if value == cls.SELLER.value:
            return cls.SELLER
        if value == cls.BUYER.value:
            return cls.BUYER
        raise InvalidOwnership(
            f"Invalid party identifier '{value}'. Owner should be BY or SE"
        )

    @property
    def dir_name(self) -> str:
        if self is Ownership.SHARED:
            raise InvalidOwnership("Can't resolve paths to shared ownership.")
        return self._dir_name
