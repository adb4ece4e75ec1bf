"""
Unit tests for the Daraja webhook payload models.
"""

import pytest

from rentpay.domains.payments.api.schemas import B2BResultPayload, StkCallbackPayload

STK_SUCCESS = """
{
  "Body": {
    "stkCallback": {
      "MerchantRequestID": "29115-34620561-1",
      "CheckoutRequestID": "ws_CO_191220191020363925",
      "ResultCode": 0,
      "ResultDesc": "The service request is processed successfully.",
      "CallbackMetadata": {
        "Item": [
          {"Name": "Amount", "Value": 1000.00},
          {"Name": "MpesaReceiptNumber", "Value": "NLJ7RT61SV"},
          {"Name": "Balance"},
          {"Name": "TransactionDate", "Value": 20191219102115},
          {"Name": "PhoneNumber", "Value": 254708374149}
        ]
      }
    }
  }
}
"""

STK_CANCELLED = """
{
  "Body": {
    "stkCallback": {
      "MerchantRequestID": "29115-34620561-1",
      "CheckoutRequestID": "ws_CO_191220191020363925",
      "ResultCode": 1032,
      "ResultDesc": "Request cancelled by user"
    }
  }
}
"""

B2B_SUCCESS = """
{
  "Result": {
    "ResultType": 0,
    "ResultCode": "0",
    "ResultDesc": "The service request is processed successfully",
    "OriginatorConversationID": "626f6ddf-ab37-4650-b882-b1de92ec9aa4",
    "ConversationID": "AG_20230420_2010759fd5662ef6d054",
    "TransactionID": "QKA81LK5CY",
    "ResultParameters": {
      "ResultParameter": [
        {"Key": "DebitAccountBalance", "Value": "{Amount={CurrencyCode=KES, MinimumAmount=618683}}"},
        {"Key": "Amount", "Value": "950.00"},
        {"Key": "TransactionReceipt", "Value": "QKA81LK5CZ"}
      ]
    }
  }
}
"""


@pytest.mark.unit
def test_stk_success_extracts_receipt():
    callback = StkCallbackPayload.model_validate_json(STK_SUCCESS).to_callback()

    assert callback is not None
    assert callback.checkout_request_id == "ws_CO_191220191020363925"
    assert callback.merchant_request_id == "29115-34620561-1"
    assert callback.is_success
    assert callback.receipt_number == "NLJ7RT61SV"
    assert callback.metadata["Balance"] is None


@pytest.mark.unit
def test_stk_failure_without_metadata():
    callback = StkCallbackPayload.model_validate_json(STK_CANCELLED).to_callback()

    assert callback is not None
    assert not callback.is_success
    assert callback.receipt_number is None
    assert callback.result_desc == "Request cancelled by user"


@pytest.mark.unit
def test_stk_payload_without_body():
    assert StkCallbackPayload.model_validate_json("{}").to_callback() is None


@pytest.mark.unit
def test_b2b_result_prefers_transaction_parameter():
    payload = B2BResultPayload.model_validate_json(B2B_SUCCESS)

    callback = payload.to_callback()

    assert callback is not None
    assert callback.is_success
    assert callback.conversation_id == "AG_20230420_2010759fd5662ef6d054"
    assert callback.originator_conversation_id == "626f6ddf-ab37-4650-b882-b1de92ec9aa4"
    assert callback.transaction_id == "QKA81LK5CZ"


@pytest.mark.unit
def test_b2b_single_result_parameter_is_wrapped():
    payload = B2BResultPayload.model_validate(
        {
            "Result": {
                "ResultCode": 2001,
                "ResultDesc": "The initiator information is invalid.",
                "ConversationID": "AG_1",
                "ResultParameters": {"ResultParameter": {"Key": "BOCompletedTime", "Value": 20230420201016}},
            }
        }
    )

    callback = payload.to_callback()

    assert len(payload.result.result_parameters.items) == 1
    assert not callback.is_success
    assert callback.transaction_id is None


@pytest.mark.unit
def test_b2b_payload_without_result():
    assert B2BResultPayload.model_validate({}).to_callback() is None
