"""Errores del flujo de pago e inscripción a actividades"""


class PaymentFlowError(Exception):
    """Error base; status_code es el código HTTP con el que se responde"""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# ---------- Reglas de negocio (400) ----------

class BusinessRuleError(PaymentFlowError):
    status_code = 400


class FreeActivityError(BusinessRuleError):
    def __init__(self, message: str = "Esta actividad es gratuita"):
        super().__init__(message)


class DiscountNotAvailable(BusinessRuleError):
    def __init__(self, message: str = "Descuento no disponible para esta actividad"):
        super().__init__(message)


class DiscountExpired(BusinessRuleError):
    def __init__(self, message: str = "El descuento por inscripción temprana ha expirado"):
        super().__init__(message)


class InvalidDiscount(BusinessRuleError):
    def __init__(self, message: str = "Descuento no válido"):
        super().__init__(message)


class PaymentNotCompleted(BusinessRuleError):
    def __init__(self, message: str = "El pago no ha sido completado exitosamente"):
        super().__init__(message)


# ---------- Violaciones de integridad (400, posible manipulación) ----------

class IntegrityViolation(PaymentFlowError):
    status_code = 400


class InvalidCurrency(IntegrityViolation):
    def __init__(self, message: str = "Moneda de pago inválida"):
        super().__init__(message)


class ActivityMismatch(IntegrityViolation):
    def __init__(self, message: str = "El pago no corresponde a esta actividad"):
        super().__init__(message)


class AmountInconsistency(IntegrityViolation):
    def __init__(self, message: str = "Inconsistencia en el monto del pago"):
        super().__init__(message)


# ---------- Otros ----------

class ActivityNotFound(PaymentFlowError):
    status_code = 404

    def __init__(self, message: str = "Actividad no encontrada"):
        super().__init__(message)


class RegistrationConflict(PaymentFlowError):
    status_code = 409

    def __init__(self, message: str = "Ya existe una inscripción para este pago"):
        super().__init__(message)


class PaymentGatewayError(PaymentFlowError):
    status_code = 500
