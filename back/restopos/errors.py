class BusinessRuleError(Exception):
    """A request that breaks a business rule (duplicates, last admin, ...)."""


class PermissionDeniedError(Exception):
    """The current user's role does not allow the requested change."""


class RestaurantNotSelectedError(BusinessRuleError):
    """A tenant-scoped write was attempted with the "all" restaurant active."""
    def __init__(self):
        super().__init__("Por favor, selecciona un restaurante específico.")
