from vendorpay.models.jobs import JobRun
from vendorpay.models.payments import Payment
from vendorpay.models.scheduled_payments import ScheduledPayment, ScheduledPaymentExecution

__all__ = [
    "JobRun",
    "Payment",
    "ScheduledPayment",
    "ScheduledPaymentExecution",
]
