"""RentPay: rent collection and owner disbursement over M-Pesa."""

__version__ = "0.1.0"
