"""Error kinds raised by the loot services.

Every error carries a stable ``code`` for API clients and the HTTP status the
app factory renders it with.
"""


class LootError(Exception):
    code = "E_LOOT"
    status = 400

    def __init__(self, message: str = "", code: str | None = None):
        super().__init__(message or self.__class__.__name__)
        if code:
            self.code = code
        self.message = message or self.__class__.__name__

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message}


class OptionDisabled(LootError):
    code = "E_OPTION_DISABLED"
    status = 409


class SupplyExhausted(LootError):
    code = "E_SUPPLY_EXHAUSTED"
    status = 409


class InvalidPayment(LootError):
    code = "E_INVALID_PAYMENT"
    status = 402


class InvalidQuantity(LootError):
    code = "E_INVALID_QUANTITY"
    status = 400


class InvalidProbabilityTable(LootError):
    code = "E_INVALID_PROBABILITIES"
    status = 400


class UnknownOption(LootError):
    code = "E_UNKNOWN_OPTION"
    status = 404


class UnknownClass(LootError):
    code = "E_UNKNOWN_CLASS"
    status = 404


class NotAuthorizedForTransfer(LootError):
    code = "E_NOT_AUTHORIZED_FOR_TRANSFER"
    status = 403


class Unauthorized(LootError):
    code = "E_UNAUTHORIZED"
    status = 403


class Paused(LootError):
    code = "E_PAUSED"
    status = 423


class ReentrantCall(LootError):
    code = "E_REENTRANT"
    status = 409


class IssuanceFailed(LootError):
    code = "E_ISSUANCE_FAILED"
    status = 502


class BindingConflict(LootError):
    code = "E_BINDING_CONFLICT"
    status = 409
