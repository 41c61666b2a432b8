from enum import Enum


class EntityType(str, Enum):
    """The two independently indexed entity collections"""

    CONTACT = "contact"
    COMPANY = "company"

    @classmethod
    def values(cls):
        return [member.value for member in cls]
