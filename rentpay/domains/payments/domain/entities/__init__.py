from rentpay.domains.payments.domain.entities.payment_record import PaymentRecord, generate_transaction_reference

__all__ = ["PaymentRecord", "generate_transaction_reference"]
