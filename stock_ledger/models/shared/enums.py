from enum import Enum

# Enums
class StockReason(str, Enum):
    PURCHASE = "purchase"
    ADJUSTMENT = "adjustment"
    USED = "used"
    DAMAGED = "damaged"
    RETURN = "return"
    OTHER = "other"
    # Written by order workflows, not accepted from manual adjustments
    RESERVE = "reserve"
    RELEASE = "release"
    FULFILL = "fulfill"
    CANCEL = "cancel"

    @classmethod
    def manual_reasons(cls) -> tuple:
        return (cls.PURCHASE, cls.ADJUSTMENT, cls.USED, cls.DAMAGED, cls.RETURN, cls.OTHER)

class UserRole(str, Enum):
    STUDENT = "student"
    TRAINER = "trainer"
    TEACHER = "teacher"
    ADMIN = "admin"
    JUDGE = "judge"
    EDITOR = "editor"
    ORGANIZER = "organizer"
    SUPERADMIN = "superadmin"
    RECEPTION = "reception"
    CLO = "clo"
